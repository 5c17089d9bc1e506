"""Shared fixtures for the notifyhub test-suite."""

from __future__ import annotations

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the project root (which contains ``notifyhub`` and ``main``) is importable
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_TIMEZONE"] = "UTC"
for _name in (
    "SENDGRID_API_KEY",
    "SENDGRID_SENDER",
    "VAPID_PUBLIC_KEY",
    "VAPID_PRIVATE_KEY",
):
    os.environ.pop(_name, None)

from notifyhub.domain.entities import Channel, NotificationEvent, NotificationType  # noqa: E402
from notifyhub.infrastructure.database import (  # noqa: E402
    build_engine,
    build_session_factory,
    initialize_database,
)

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)

    def set(self, hour: int, minute: int = 0) -> None:
        self.now = self.now.replace(hour=hour, minute=minute, second=0, microsecond=0)


class RecordingAdapter:
    """Channel adapter that remembers every notification it was asked to deliver."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.delivered = []
        self.data = []
        self._lock = threading.Lock()

    def deliver(self, notification, data=None) -> None:
        with self._lock:
            self.delivered.append(notification)
            self.data.append(data)
        if self.fail:
            raise RuntimeError("transport unavailable")


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(
        f"sqlite:///{tmp_path / 'notifyhub.db'}", lock_timeout_seconds=30
    )
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def executor():
    executor = ThreadPoolExecutor(max_workers=4)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture()
def adapters() -> dict[Channel, RecordingAdapter]:
    return {channel: RecordingAdapter() for channel in Channel}


def make_event(
    notification_type: NotificationType = NotificationType.DEAL_CREATED,
    *,
    user_id: str = "user-1",
    owner_scope_id: str = "tenant-1",
    entity_type: str | None = None,
    entity_id: str | None = None,
    title: str = "New deal",
    message: str = "Acme deal was created",
    data: dict | None = None,
) -> NotificationEvent:
    return NotificationEvent(
        type=notification_type,
        title=title,
        message=message,
        user_id=user_id,
        owner_scope_id=owner_scope_id,
        entity_type=entity_type,
        entity_id=entity_id,
        data=data or {},
    )


@pytest.fixture()
def event_factory():
    return make_event


@pytest.fixture()
def make_adapter():
    return RecordingAdapter
