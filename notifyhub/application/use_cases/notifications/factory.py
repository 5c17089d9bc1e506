"""Wiring of the orchestrator and its channel adapters from settings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor

from sqlalchemy.orm import Session, sessionmaker

from notifyhub.config import Settings, get_settings
from notifyhub.domain.entities import Channel
from notifyhub.infrastructure.notifications import (
    NotificationConnectionManager,
    NotificationPublisher,
)
from notifyhub.infrastructure.push import WebPushSender

from .channels import ChannelAdapter, ChannelDispatcher, EmailChannel, InAppChannel, PushChannel
from .orchestrator import NotificationOrchestrator

logger = logging.getLogger(__name__)


def build_channel_adapters(
    settings: Settings,
    manager: NotificationConnectionManager,
    session_factory: sessionmaker[Session],
    *,
    email_lookup: Callable[[str], str | None] | None = None,
) -> dict[Channel, ChannelAdapter]:
    """Return the adapters that can work with the current configuration."""

    adapters: dict[Channel, ChannelAdapter] = {
        Channel.IN_APP: InAppChannel(NotificationPublisher(manager)),
    }

    if settings.push_enabled:
        adapters[Channel.PUSH] = PushChannel(session_factory, WebPushSender(settings))
    else:
        logger.warning("Push channel disabled: VAPID keys are not configured")

    if settings.email_enabled and email_lookup is not None:
        adapters[Channel.EMAIL] = EmailChannel(email_lookup)
    elif settings.email_enabled:
        logger.warning("Email channel disabled: no recipient lookup was provided")
    else:
        logger.info("Email channel disabled: SendGrid is not configured")

    return adapters


def build_notification_orchestrator(
    manager: NotificationConnectionManager,
    *,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    email_lookup: Callable[[str], str | None] | None = None,
    executor: Executor | None = None,
) -> NotificationOrchestrator:
    """Create a ready-to-use orchestrator sharing ``manager`` with the websocket layer."""

    settings = settings or get_settings()
    if session_factory is None:
        from notifyhub.infrastructure.database import SessionLocal

        session_factory = SessionLocal

    adapters = build_channel_adapters(
        settings, manager, session_factory, email_lookup=email_lookup
    )
    dispatcher = ChannelDispatcher(
        adapters,
        executor
        or ThreadPoolExecutor(
            max_workers=settings.dispatch_max_workers,
            thread_name_prefix="notification-dispatch",
        ),
    )
    return NotificationOrchestrator(
        session_factory,
        dispatcher,
        timeout_seconds=settings.notify_timeout_seconds,
    )


__all__ = ["build_channel_adapters", "build_notification_orchestrator"]
