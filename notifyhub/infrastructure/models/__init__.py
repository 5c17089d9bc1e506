"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .notification_group_lock import NotificationGroupLockModel
from .notification_preference import NotificationPreferenceModel
from .push_subscription import PushSubscriptionModel

__all__ = [
    "NotificationModel",
    "NotificationGroupLockModel",
    "NotificationPreferenceModel",
    "PushSubscriptionModel",
]
