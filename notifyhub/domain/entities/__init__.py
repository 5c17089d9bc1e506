"""Domain entities exposed by the application."""

from .notification import Notification, NotificationType
from .notification_event import NotificationEvent
from .notification_preference import (
    DEFAULT_GROUPING_WINDOW_SECONDS,
    MAX_GROUPING_WINDOW_SECONDS,
    MIN_GROUPING_WINDOW_SECONDS,
    Channel,
    ChannelOverride,
    MutedEntity,
    NotificationPreference,
    SoundType,
)
from .push_subscription import PushSubscription

__all__ = [
    "Channel",
    "ChannelOverride",
    "DEFAULT_GROUPING_WINDOW_SECONDS",
    "MAX_GROUPING_WINDOW_SECONDS",
    "MIN_GROUPING_WINDOW_SECONDS",
    "MutedEntity",
    "Notification",
    "NotificationEvent",
    "NotificationPreference",
    "NotificationType",
    "PushSubscription",
    "SoundType",
]
