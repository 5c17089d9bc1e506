"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    """Kinds of domain events that can produce a notification."""

    DEAL_CREATED = "DEAL_CREATED"
    DEAL_UPDATED = "DEAL_UPDATED"
    DEAL_ASSIGNED = "DEAL_ASSIGNED"
    DEAL_STATUS_CHANGED = "DEAL_STATUS_CHANGED"
    CONTACT_CREATED = "CONTACT_CREATED"
    CONTACT_UPDATED = "CONTACT_UPDATED"
    ACTIVITY_CREATED = "ACTIVITY_CREATED"
    ACTIVITY_ASSIGNED = "ACTIVITY_ASSIGNED"
    ACTIVITY_DUE_SOON = "ACTIVITY_DUE_SOON"
    COMMENT_ADDED = "COMMENT_ADDED"
    MENTION = "MENTION"
    MEETING_CREATED = "MEETING_CREATED"
    MEETING_UPDATED = "MEETING_UPDATED"
    MEETING_REMINDER = "MEETING_REMINDER"
    MEETING_CANCELLED = "MEETING_CANCELLED"
    SYSTEM = "SYSTEM"


@dataclass
class Notification:
    """Alert shown to a user, possibly consolidating several events."""

    id: int | None
    user_id: str
    owner_scope_id: str
    type: NotificationType
    title: str
    message: str
    entity_type: str | None = None
    entity_id: str | None = None
    group_key: str | None = None
    group_count: int = 1
    is_read: bool = False
    is_muted: bool = False
    snoozed_until: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_grouped(self) -> bool:
        """Return ``True`` once the notification absorbed more than one event."""

        return self.group_count > 1

    def is_active(self, now: datetime) -> bool:
        """Return ``True`` when the notification should appear in default listings."""

        if self.is_muted:
            return False
        return self.snoozed_until is None or self.snoozed_until <= now


__all__ = ["Notification", "NotificationType"]
