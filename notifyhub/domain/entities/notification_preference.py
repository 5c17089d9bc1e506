"""Domain entities describing how a user wants to be notified."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .notification import NotificationType

DEFAULT_GROUPING_WINDOW_SECONDS = 300
MIN_GROUPING_WINDOW_SECONDS = 60
MAX_GROUPING_WINDOW_SECONDS = 3600


class Channel(str, Enum):
    """Delivery transports a notification can be sent through."""

    EMAIL = "email"
    PUSH = "push"
    IN_APP = "inApp"


class SoundType(str, Enum):
    """How the client should sound when an in-app notification arrives."""

    DEFAULT = "default"
    SUBTLE = "subtle"
    NONE = "none"


@dataclass(frozen=True)
class ChannelOverride:
    """Per-type channel settings; ``None`` defers to the global toggle."""

    email_enabled: bool | None = None
    push_enabled: bool | None = None
    in_app_enabled: bool | None = None

    def for_channel(self, channel: Channel) -> bool | None:
        if channel is Channel.EMAIL:
            return self.email_enabled
        if channel is Channel.PUSH:
            return self.push_enabled
        return self.in_app_enabled

    def is_empty(self) -> bool:
        return (
            self.email_enabled is None
            and self.push_enabled is None
            and self.in_app_enabled is None
        )


@dataclass(frozen=True)
class MutedEntity:
    """Domain object a user opted out of hearing about."""

    entity_type: str
    entity_id: str


@dataclass
class NotificationPreference:
    """Notification settings stored once per user."""

    user_id: str
    email_enabled: bool = True
    push_enabled: bool = True
    in_app_enabled: bool = True
    type_preferences: dict[NotificationType, ChannelOverride] = field(
        default_factory=dict
    )
    quiet_hours_enabled: bool = False
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    muted_entities: frozenset[MutedEntity] = field(default_factory=frozenset)
    grouping_enabled: bool = True
    grouping_window_seconds: int = DEFAULT_GROUPING_WINDOW_SECONDS
    sound_enabled: bool = True
    sound_type: SoundType = SoundType.DEFAULT
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def channel_enabled(self, channel: Channel) -> bool:
        """Return the global toggle for ``channel``."""

        if channel is Channel.EMAIL:
            return self.email_enabled
        if channel is Channel.PUSH:
            return self.push_enabled
        return self.in_app_enabled

    def override_for(self, notification_type: NotificationType) -> ChannelOverride | None:
        return self.type_preferences.get(notification_type)

    def is_muted(self, entity_type: str, entity_id: str) -> bool:
        return MutedEntity(entity_type, entity_id) in self.muted_entities


__all__ = [
    "Channel",
    "ChannelOverride",
    "DEFAULT_GROUPING_WINDOW_SECONDS",
    "MAX_GROUPING_WINDOW_SECONDS",
    "MIN_GROUPING_WINDOW_SECONDS",
    "MutedEntity",
    "NotificationPreference",
    "SoundType",
]
