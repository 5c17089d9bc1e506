"""Single entry point turning a domain event into a notification decision."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime

from anyio import to_thread
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from notifyhub.domain.entities import Channel, Notification, NotificationEvent
from notifyhub.infrastructure.database import is_lock_timeout
from notifyhub.infrastructure.repositories import NotificationRepository
from notifyhub.utils import now_in_app_timezone

from .channels import ChannelDispatcher
from .grouping import NotificationGroupingEngine, clamp_window, generate_group_key
from .preferences import NotificationPreferenceResolver

logger = logging.getLogger(__name__)

DEFAULT_NOTIFY_TIMEOUT_SECONDS = 5.0


class NotificationTimeoutError(TimeoutError):
    """The decision path did not reach a durable record in time."""


@dataclass
class NotifyOutcome:
    """What a single ``notify`` call decided."""

    notification: Notification | None
    merged: bool = False
    channels: frozenset[Channel] = frozenset()
    deliveries: list[Future] = field(default_factory=list)

    @property
    def suppressed(self) -> bool:
        return self.notification is None


class _Deadline:
    def __init__(self, seconds: float) -> None:
        self._seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def check(self, stage: str) -> None:
        if time.monotonic() > self._expires_at:
            raise NotificationTimeoutError(
                f"Notification decision exceeded {self._seconds:g}s before {stage}"
            )

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())


class NotificationOrchestrator:
    """Sequence mute check, consolidation, persistence and dispatch for one event.

    Each call uses its own session. Finding a consolidation candidate and
    writing the merged or new row happen in one transaction holding the lock
    row of the group key, so concurrent events for the same key serialize.
    Dispatch only starts after the commit and never feeds back into it.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        dispatcher: ChannelDispatcher,
        *,
        timeout_seconds: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    def notify(self, event: NotificationEvent) -> Notification | None:
        """Record ``event`` and deliver it; ``None`` means it was suppressed."""

        return self.process(event).notification

    async def notify_async(self, event: NotificationEvent) -> Notification | None:
        """Run :meth:`notify` on a worker thread for async producers."""

        return await to_thread.run_sync(self.notify, event)

    def process(self, event: NotificationEvent) -> NotifyOutcome:
        deadline = _Deadline(self._timeout_seconds)
        with self._session_factory() as session:
            try:
                outcome = self._decide(session, event, deadline)
            except OperationalError as exc:
                session.rollback()
                if is_lock_timeout(exc):
                    raise NotificationTimeoutError(
                        f"Notification decision for {event.user_id} timed out waiting for a lock"
                    ) from exc
                raise
            except Exception:
                session.rollback()
                raise

        if outcome.notification is None:
            return outcome

        if outcome.channels:
            outcome.deliveries = self._dispatcher.dispatch(
                outcome.notification, outcome.channels, data=event.data
            )
        else:
            logger.info(
                "Notification %s stored without delivery for user %s",
                outcome.notification.id,
                event.user_id,
            )
        return outcome

    def _decide(
        self, session: Session, event: NotificationEvent, deadline: _Deadline
    ) -> NotifyOutcome:
        resolver = NotificationPreferenceResolver(session, clock=self._clock)
        preferences = resolver.get_or_create(event.user_id)

        if event.has_entity and preferences.is_muted(event.entity_type, event.entity_id):
            logger.info(
                "Suppressed %s for user %s: %s %s is muted",
                event.type.value,
                event.user_id,
                event.entity_type,
                event.entity_id,
            )
            return NotifyOutcome(notification=None)

        group_key = None
        if preferences.grouping_enabled:
            group_key = generate_group_key(event.type, event.entity_type, event.entity_id)

        deadline.check("consolidation")
        notification: Notification | None = None
        merged = False
        if group_key is not None:
            NotificationRepository(session).acquire_group_lock(
                user_id=event.user_id,
                owner_scope_id=event.owner_scope_id,
                group_key=group_key,
                lock_timeout_seconds=deadline.remaining(),
            )
            grouping = NotificationGroupingEngine(session, clock=self._clock)
            candidate = grouping.find_groupable(
                user_id=event.user_id,
                owner_scope_id=event.owner_scope_id,
                group_key=group_key,
                window_seconds=clamp_window(preferences.grouping_window_seconds),
            )
            if candidate is not None:
                notification = grouping.merge(candidate)
                merged = True

        if notification is None:
            now = self._clock()
            notification = NotificationRepository(session).create(
                Notification(
                    id=None,
                    user_id=event.user_id,
                    owner_scope_id=event.owner_scope_id,
                    type=event.type,
                    title=event.title,
                    message=event.message,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    group_key=group_key,
                    group_count=1,
                    created_at=now,
                    updated_at=now,
                ),
                commit=False,
            )

        deadline.check("commit")
        session.commit()
        logger.info(
            "%s notification %s for user %s (type=%s, group_key=%s, count=%s)",
            "Merged" if merged else "Created",
            notification.id,
            event.user_id,
            event.type.value,
            group_key,
            notification.group_count,
        )

        channels = resolver.get_enabled_channels(
            event.user_id, notification.type, notification.entity_type, notification.entity_id
        )
        return NotifyOutcome(
            notification=notification, merged=merged, channels=frozenset(channels)
        )


__all__ = [
    "DEFAULT_NOTIFY_TIMEOUT_SECONDS",
    "NotificationOrchestrator",
    "NotificationTimeoutError",
    "NotifyOutcome",
]
