"""Channel adapters and the dispatcher that fans a notification out to them."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Executor, Future
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from notifyhub.domain.entities import Channel, Notification, PushSubscription
from notifyhub.infrastructure.email import send_notification_email
from notifyhub.infrastructure.notifications import NotificationPublisher
from notifyhub.infrastructure.push import PushDeliveryError, PushGoneError, WebPushSender
from notifyhub.infrastructure.repositories import PushSubscriptionRepository

from .grouping import resolve_notification_url

logger = logging.getLogger(__name__)

NOTIFICATION_ICON = "/icons/notification-icon.png"
NOTIFICATION_BADGE = "/icons/badge-icon.png"


class ChannelAdapter(Protocol):
    """Anything able to deliver a persisted notification through one transport."""

    def deliver(
        self, notification: Notification, data: Mapping[str, Any] | None = None
    ) -> None: ...


class InAppChannel:
    """Real-time delivery to the user's open websocket sessions."""

    def __init__(self, publisher: NotificationPublisher) -> None:
        self._publisher = publisher

    def deliver(
        self, notification: Notification, data: Mapping[str, Any] | None = None
    ) -> None:
        self._publisher.dispatch(notification)


class PushChannel:
    """Web Push delivery to every registered device of a user."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        sender: WebPushSender,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender

    @property
    def public_key(self) -> str:
        return self._sender.public_key

    def deliver(
        self, notification: Notification, data: Mapping[str, Any] | None = None
    ) -> None:
        """Push ``notification`` to every device; producer ``data`` rides along."""

        payload_data = {
            **(data or {}),
            "notification_id": notification.id,
            "type": notification.type.value,
            "group_count": notification.group_count,
            "url": resolve_notification_url(notification.type, notification.entity_type),
        }
        if notification.entity_type and notification.entity_id:
            payload_data["entity_type"] = notification.entity_type
            payload_data["entity_id"] = notification.entity_id
        self.send_to_all_devices(
            notification.user_id, notification.title, notification.message, payload_data
        )

    def send_to_all_devices(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Mapping[str, Any] | None = None,
    ) -> int:
        """Send a rich push message to each device of ``user_id``.

        Endpoints reported as gone are deleted. Returns the number of
        devices that accepted the message.
        """

        data = dict(data or {})
        payload = {
            "title": title,
            "body": body,
            "icon": NOTIFICATION_ICON,
            "badge": NOTIFICATION_BADGE,
            "data": {
                **data,
                "timestamp": int(time.time() * 1000),
                "url": data.get("url") or "/dashboard",
            },
            "actions": [
                {"action": "view", "title": "View"},
                {"action": "close", "title": "Close"},
            ],
        }

        with self._session_factory() as session:
            repository = PushSubscriptionRepository(session)
            subscriptions = repository.list_for_user(user_id)
            if not subscriptions:
                logger.debug("No push subscriptions found for user %s", user_id)
                return 0

            success_count = 0
            failed_count = 0
            removed_count = 0
            for subscription in subscriptions:
                try:
                    self._sender.send(subscription, payload)
                except PushGoneError:
                    logger.warning(
                        "Subscription expired, removing endpoint %s",
                        subscription.endpoint[:60],
                    )
                    repository.delete_by_endpoint(subscription.endpoint)
                    removed_count += 1
                except PushDeliveryError as exc:
                    failed_count += 1
                    logger.warning(
                        "Push delivery to %s failed: %s",
                        subscription.endpoint[:60],
                        exc,
                    )
                else:
                    success_count += 1

        logger.info(
            "Sent push notifications to %s/%s devices for user %s (failed=%s, removed=%s)",
            success_count,
            len(subscriptions),
            user_id,
            failed_count,
            removed_count,
        )
        return success_count

    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        keys: Mapping[str, str],
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Register ``endpoint`` for ``user_id``; re-subscribing refreshes the keys."""

        if not endpoint or not keys.get("p256dh") or not keys.get("auth"):
            raise ValueError("endpoint and the p256dh/auth keys are required")
        with self._session_factory() as session:
            return PushSubscriptionRepository(session).save(
                PushSubscription(
                    id=None,
                    user_id=user_id,
                    endpoint=endpoint,
                    keys={"p256dh": keys["p256dh"], "auth": keys["auth"]},
                    user_agent=user_agent,
                )
            )

    def unsubscribe(self, user_id: str, endpoint: str) -> None:
        with self._session_factory() as session:
            repository = PushSubscriptionRepository(session)
            subscription = repository.get_by_endpoint(endpoint)
            if subscription is None or subscription.user_id != user_id:
                raise ValueError("Subscription not found")
            repository.delete_by_endpoint(endpoint)
        logger.info("User %s unsubscribed from push notifications", user_id)

    def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        with self._session_factory() as session:
            return list(PushSubscriptionRepository(session).list_for_user(user_id))

    def delete_all_subscriptions(self, user_id: str) -> int:
        with self._session_factory() as session:
            deleted = PushSubscriptionRepository(session).delete_for_user(user_id)
        logger.info("Deleted %s push subscriptions for user %s", deleted, user_id)
        return deleted


class EmailChannel:
    """Email delivery through SendGrid."""

    def __init__(
        self,
        recipient_lookup: Callable[[str], str | None],
        *,
        sender: Callable[[str, Notification], bool] = send_notification_email,
    ) -> None:
        self._recipient_lookup = recipient_lookup
        self._sender = sender

    def deliver(
        self, notification: Notification, data: Mapping[str, Any] | None = None
    ) -> None:
        recipient = self._recipient_lookup(notification.user_id)
        if not recipient:
            logger.info(
                "No email address known for user %s; skipping email delivery",
                notification.user_id,
            )
            return
        if not self._sender(recipient, notification):
            logger.warning(
                "Email delivery of notification %s to user %s was not accepted",
                notification.id,
                notification.user_id,
            )


class ChannelDispatcher:
    """Deliver a notification to each enabled channel as an independent task.

    A task failing never affects the other tasks nor the caller; its
    exception is logged and swallowed inside the task.
    """

    def __init__(
        self,
        adapters: Mapping[Channel, ChannelAdapter],
        executor: Executor,
    ) -> None:
        self._adapters = dict(adapters)
        self._executor = executor

    @property
    def channels(self) -> frozenset[Channel]:
        return frozenset(self._adapters)

    def dispatch(
        self,
        notification: Notification,
        channels: Iterable[Channel],
        *,
        data: Mapping[str, Any] | None = None,
    ) -> list[Future]:
        """Submit one delivery task per channel; ``data`` is extra producer context."""

        futures: list[Future] = []
        for channel in sorted(set(channels), key=lambda item: item.value):
            adapter = self._adapters.get(channel)
            if adapter is None:
                logger.debug("No adapter registered for channel %s", channel.value)
                continue
            futures.append(
                self._executor.submit(self._deliver, channel, adapter, notification, data)
            )
        return futures

    @staticmethod
    def _deliver(
        channel: Channel,
        adapter: ChannelAdapter,
        notification: Notification,
        data: Mapping[str, Any] | None,
    ) -> bool:
        try:
            adapter.deliver(notification, data)
        except Exception:
            logger.exception(
                "Delivery of notification %s via %s failed",
                notification.id,
                channel.value,
            )
            return False
        logger.info(
            "Dispatched notification %s to user %s via %s",
            notification.id,
            notification.user_id,
            channel.value,
        )
        return True


__all__ = [
    "ChannelAdapter",
    "ChannelDispatcher",
    "EmailChannel",
    "InAppChannel",
    "PushChannel",
]
