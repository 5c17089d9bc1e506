"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from notifyhub.domain.entities import Notification

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)

NOTIFICATION_CREATED_EVENT = "notification"
NOTIFICATION_UPDATED_EVENT = "notification.updated"


class NotificationPublisher:
    """Serialize notifications and schedule their delivery to open sockets."""

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager

    def push_to_user(
        self, user_id: str, owner_scope_id: str, message: dict[str, Any]
    ) -> bool:
        """Schedule ``message`` for every socket of ``user_id`` in ``owner_scope_id``.

        Returns ``False`` when nothing could be scheduled (no open socket or
        no event loop to run the send on).
        """

        if not self._manager.is_connected(user_id, owner_scope_id):
            logger.debug("User %s has no open websocket; skipping in-app push", user_id)
            return False

        coroutine = self._manager.send_to_user(user_id, owner_scope_id, message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = self._manager.loop
            if loop is None or loop.is_closed():
                coroutine.close()
                logger.debug("No event loop available for user %s sockets", user_id)
                return False
            asyncio.run_coroutine_threadsafe(coroutine, loop)
        else:
            loop.create_task(coroutine)
        return True

    def dispatch(self, notification: Notification) -> bool:
        """Schedule ``notification`` to be delivered to its user."""

        event_type = (
            NOTIFICATION_UPDATED_EVENT if notification.is_grouped else NOTIFICATION_CREATED_EVENT
        )
        message = {"type": event_type, "data": serialize_notification(notification)}
        return self.push_to_user(
            notification.user_id, notification.owner_scope_id, message
        )


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "owner_scope_id": notification.owner_scope_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "entity_type": notification.entity_type,
        "entity_id": notification.entity_id,
        "group_key": notification.group_key,
        "group_count": notification.group_count,
        "is_read": notification.is_read,
        "snoozed_until": notification.snoozed_until.isoformat()
        if notification.snoozed_until
        else None,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
        "updated_at": notification.updated_at.isoformat()
        if notification.updated_at
        else None,
    }


__all__ = [
    "NOTIFICATION_CREATED_EVENT",
    "NOTIFICATION_UPDATED_EVENT",
    "NotificationPublisher",
    "serialize_notification",
]
