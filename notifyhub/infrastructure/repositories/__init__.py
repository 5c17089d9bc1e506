"""Repository implementations for infrastructure layer."""

from .notification_preference_repository import NotificationPreferenceRepository
from .notification_repository import NotificationRepository
from .push_subscription_repository import PushSubscriptionRepository

__all__ = [
    "NotificationPreferenceRepository",
    "NotificationRepository",
    "PushSubscriptionRepository",
]
