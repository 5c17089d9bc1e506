"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager
from .publisher import (
    NOTIFICATION_CREATED_EVENT,
    NOTIFICATION_UPDATED_EVENT,
    NotificationPublisher,
    serialize_notification,
)

__all__ = [
    "NOTIFICATION_CREATED_EVENT",
    "NOTIFICATION_UPDATED_EVENT",
    "NotificationConnectionManager",
    "NotificationPublisher",
    "serialize_notification",
]
