"""Tests for database helpers bounding lock waits and storing timestamps."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError

from notifyhub.application.use_cases.notifications import NotificationGroupingEngine
from notifyhub.domain.entities import Notification, NotificationType
from notifyhub.infrastructure.database import apply_lock_timeout, is_lock_timeout
from notifyhub.infrastructure.repositories import NotificationRepository
from notifyhub.utils import datetime as datetime_module
from notifyhub.utils import from_storage_datetime, to_storage_datetime


class _RecordingSession:
    def __init__(self, dialect: str) -> None:
        self._bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect))
        self.executed = []

    def get_bind(self):
        return self._bind

    def execute(self, statement, params=None):
        self.executed.append((str(statement), params))


def test_postgresql_lock_timeout_is_transaction_local() -> None:
    session = _RecordingSession("postgresql")

    apply_lock_timeout(session, 1.5)

    assert session.executed == [
        ("SELECT set_config('lock_timeout', :value, true)", {"value": "1500ms"})
    ]


def test_exhausted_deadline_still_sets_a_positive_timeout() -> None:
    session = _RecordingSession("postgresql")

    apply_lock_timeout(session, 0)

    assert session.executed[0][1] == {"value": "1ms"}


def test_sqlite_relies_on_connection_timeout() -> None:
    session = _RecordingSession("sqlite")

    apply_lock_timeout(session, 1.5)

    assert session.executed == []


def test_is_lock_timeout() -> None:
    class LockNotAvailable(Exception):
        pgcode = "55P03"

    assert is_lock_timeout(OperationalError("stmt", {}, LockNotAvailable()))
    assert is_lock_timeout(OperationalError("stmt", {}, Exception("database is locked")))
    assert not is_lock_timeout(OperationalError("stmt", {}, Exception("disk I/O error")))


def test_storage_order_survives_dst_fall_back(monkeypatch) -> None:
    monkeypatch.setattr(
        datetime_module, "get_app_timezone", lambda: ZoneInfo("America/New_York")
    )
    # 01:30 EDT happens before 01:10 EST on the night clocks go back.
    earlier = datetime(2024, 11, 3, 5, 30, tzinfo=timezone.utc)
    later = datetime(2024, 11, 3, 6, 10, tzinfo=timezone.utc)

    assert to_storage_datetime(earlier) < to_storage_datetime(later)
    assert to_storage_datetime(earlier) == datetime(2024, 11, 3, 5, 30)
    assert from_storage_datetime(to_storage_datetime(later)) == later


def test_window_is_exact_across_dst_fall_back(session, clock, monkeypatch) -> None:
    monkeypatch.setattr(
        datetime_module, "get_app_timezone", lambda: ZoneInfo("America/New_York")
    )
    clock.now = datetime(2024, 11, 3, 5, 30, tzinfo=timezone.utc)
    NotificationRepository(session).create(
        Notification(
            id=None,
            user_id="user-1",
            owner_scope_id="tenant-1",
            type=NotificationType.DEAL_CREATED,
            title="New deal",
            message="Acme deal was created",
            group_key="DEAL_CREATED:GENERAL",
            created_at=clock(),
            updated_at=clock(),
        )
    )

    clock.advance(40 * 60)
    found = NotificationGroupingEngine(session, clock=clock).find_groupable(
        user_id="user-1",
        owner_scope_id="tenant-1",
        group_key="DEAL_CREATED:GENERAL",
        window_seconds=300,
    )

    assert found is None
