"""Consolidation of bursty events into a single evolving notification."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Final

from sqlalchemy.orm import Session

from notifyhub.domain.entities import (
    DEFAULT_GROUPING_WINDOW_SECONDS,
    MAX_GROUPING_WINDOW_SECONDS,
    MIN_GROUPING_WINDOW_SECONDS,
    Notification,
    NotificationType,
)
from notifyhub.infrastructure.repositories import NotificationRepository
from notifyhub.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

GENERAL_GROUP_SUFFIX: Final[str] = "GENERAL"

GROUPABLE_TYPES: Final[frozenset[NotificationType]] = frozenset(
    {
        NotificationType.DEAL_CREATED,
        NotificationType.DEAL_UPDATED,
        NotificationType.CONTACT_CREATED,
        NotificationType.CONTACT_UPDATED,
        NotificationType.ACTIVITY_CREATED,
        NotificationType.COMMENT_ADDED,
    }
)

_GROUPED_MESSAGES: Final[dict[NotificationType, str]] = {
    NotificationType.DEAL_CREATED: "{n} new deals created",
    NotificationType.DEAL_UPDATED: "{n} deals updated",
    NotificationType.DEAL_ASSIGNED: "{n} deals assigned to you",
    NotificationType.DEAL_STATUS_CHANGED: "{n} deal statuses changed",
    NotificationType.CONTACT_CREATED: "{n} new contacts added",
    NotificationType.CONTACT_UPDATED: "{n} contacts updated",
    NotificationType.ACTIVITY_CREATED: "{n} new activities created",
    NotificationType.ACTIVITY_ASSIGNED: "{n} activities assigned to you",
    NotificationType.ACTIVITY_DUE_SOON: "{n} activities due soon",
    NotificationType.COMMENT_ADDED: "{n} new comments added",
    NotificationType.MENTION: "{n} new mentions",
    NotificationType.SYSTEM: "{n} system notifications",
}
_FALLBACK_GROUPED_MESSAGE: Final[str] = "{n} new notifications"

_ENTITY_ROUTES: Final[dict[str, str]] = {
    "Deal": "/deals",
    "Contact": "/contacts",
    "Activity": "/activities",
    "Company": "/companies",
}
_TYPE_ROUTES: Final[dict[NotificationType, str]] = {
    NotificationType.DEAL_CREATED: "/deals",
    NotificationType.DEAL_UPDATED: "/deals",
    NotificationType.DEAL_ASSIGNED: "/deals",
    NotificationType.DEAL_STATUS_CHANGED: "/deals",
    NotificationType.CONTACT_CREATED: "/contacts",
    NotificationType.CONTACT_UPDATED: "/contacts",
    NotificationType.ACTIVITY_CREATED: "/activities",
    NotificationType.ACTIVITY_ASSIGNED: "/activities",
    NotificationType.ACTIVITY_DUE_SOON: "/activities",
}
DEFAULT_ROUTE: Final[str] = "/dashboard"


def is_groupable(notification_type: NotificationType) -> bool:
    """Return ``True`` for event types that may be consolidated."""

    return notification_type in GROUPABLE_TYPES


def generate_group_key(
    notification_type: NotificationType,
    entity_type: str | None = None,
    entity_id: str | None = None,
) -> str | None:
    """Return the consolidation key for an event, or ``None`` if it never groups.

    Events about a specific entity group per entity
    (``COMMENT_ADDED:Deal:42``); the rest group per type (``DEAL_CREATED:GENERAL``).
    """

    if not is_groupable(notification_type):
        return None

    type_value = NotificationType(notification_type).value
    if entity_type and entity_id:
        return f"{type_value}:{entity_type}:{entity_id}"
    return f"{type_value}:{GENERAL_GROUP_SUFFIX}"


def compose_grouped_message(notification_type: NotificationType, count: int) -> str:
    """Return the summary message for ``count`` consolidated events.

    Callers keep the event's own message while ``count`` is 1; an empty
    string is returned in that case.
    """

    if count <= 1:
        return ""
    template = _GROUPED_MESSAGES.get(notification_type, _FALLBACK_GROUPED_MESSAGE)
    return template.format(n=count)


def clamp_window(preferred_seconds: int | None = None) -> int:
    """Return the grouping window in seconds, clamped to the supported range."""

    if not preferred_seconds:
        return DEFAULT_GROUPING_WINDOW_SECONDS
    return max(
        MIN_GROUPING_WINDOW_SECONDS, min(MAX_GROUPING_WINDOW_SECONDS, preferred_seconds)
    )


def resolve_notification_url(
    notification_type: NotificationType, entity_type: str | None = None
) -> str:
    """Return the client route a push notification should open."""

    if entity_type:
        return _ENTITY_ROUTES.get(entity_type, DEFAULT_ROUTE)
    return _TYPE_ROUTES.get(notification_type, DEFAULT_ROUTE)


class NotificationGroupingEngine:
    """Look up and merge consolidation candidates within a session."""

    def __init__(
        self,
        session: Session,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._repository = NotificationRepository(session)
        self._clock = clock

    def find_groupable(
        self,
        *,
        user_id: str,
        owner_scope_id: str,
        group_key: str,
        window_seconds: int,
    ) -> Notification | None:
        """Return the newest notification for ``group_key`` inside the window.

        The window looks back from now; a candidate created exactly at the
        cutoff is still inside it.
        """

        cutoff = self._clock() - timedelta(seconds=window_seconds)
        notification = self._repository.find_most_recent_by_group_key(
            user_id=user_id,
            owner_scope_id=owner_scope_id,
            group_key=group_key,
            since=cutoff,
        )
        if notification is not None:
            logger.info(
                "Found groupable notification %s (group_key=%s, count=%s)",
                notification.id,
                group_key,
                notification.group_count,
            )
        return notification

    def merge(self, notification: Notification) -> Notification:
        """Absorb one more event into ``notification`` without committing."""

        new_count = notification.group_count + 1
        notification.group_count = new_count
        notification.message = compose_grouped_message(notification.type, new_count)
        notification.updated_at = self._clock()
        updated = self._repository.update(notification, commit=False)
        logger.info(
            "Updated grouped notification %s: count=%s", updated.id, updated.group_count
        )
        return updated


__all__ = [
    "DEFAULT_ROUTE",
    "GROUPABLE_TYPES",
    "NotificationGroupingEngine",
    "clamp_window",
    "compose_grouped_message",
    "generate_group_key",
    "is_groupable",
    "resolve_notification_url",
]
