from .notification import NotificationAckMessage

__all__ = ["NotificationAckMessage"]
