"""Tests for group keys, grouped messages and candidate lookup."""

from __future__ import annotations

import pytest

from notifyhub.application.use_cases.notifications import (
    NotificationGroupingEngine,
    clamp_window,
    compose_grouped_message,
    generate_group_key,
    is_groupable,
    resolve_notification_url,
)
from notifyhub.domain.entities import Notification, NotificationType
from notifyhub.infrastructure.repositories import NotificationRepository


def _store(session, clock, *, group_key: str, count: int = 1, user_id: str = "user-1"):
    return NotificationRepository(session).create(
        Notification(
            id=None,
            user_id=user_id,
            owner_scope_id="tenant-1",
            type=NotificationType.DEAL_CREATED,
            title="New deal",
            message="Acme deal was created",
            group_key=group_key,
            group_count=count,
            created_at=clock(),
            updated_at=clock(),
        )
    )


def test_group_key_is_scoped_to_entity_when_present() -> None:
    assert (
        generate_group_key(NotificationType.COMMENT_ADDED, "Deal", "42")
        == "COMMENT_ADDED:Deal:42"
    )


def test_group_key_falls_back_to_general_bucket() -> None:
    assert generate_group_key(NotificationType.DEAL_CREATED) == "DEAL_CREATED:GENERAL"
    assert (
        generate_group_key(NotificationType.DEAL_CREATED, "Deal", None)
        == "DEAL_CREATED:GENERAL"
    )


@pytest.mark.parametrize(
    "notification_type",
    [
        NotificationType.MENTION,
        NotificationType.DEAL_ASSIGNED,
        NotificationType.MEETING_REMINDER,
        NotificationType.SYSTEM,
    ],
)
def test_non_groupable_types_have_no_key(notification_type) -> None:
    assert not is_groupable(notification_type)
    assert generate_group_key(notification_type, "Deal", "1") is None


def test_group_key_is_deterministic() -> None:
    keys = {
        generate_group_key(NotificationType.CONTACT_UPDATED, "Contact", "7")
        for _ in range(10)
    }
    assert keys == {"CONTACT_UPDATED:Contact:7"}


def test_grouped_message_templates() -> None:
    assert compose_grouped_message(NotificationType.DEAL_CREATED, 3) == "3 new deals created"
    assert compose_grouped_message(NotificationType.COMMENT_ADDED, 2) == "2 new comments added"
    assert compose_grouped_message(NotificationType.MEETING_CREATED, 4) == "4 new notifications"


def test_grouped_message_is_empty_for_single_event() -> None:
    assert compose_grouped_message(NotificationType.DEAL_CREATED, 1) == ""


@pytest.mark.parametrize(
    ("preferred", "expected"),
    [(None, 300), (0, 300), (10, 60), (60, 60), (900, 900), (3600, 3600), (10000, 3600)],
)
def test_clamp_window(preferred, expected) -> None:
    assert clamp_window(preferred) == expected


def test_resolve_notification_url() -> None:
    assert resolve_notification_url(NotificationType.COMMENT_ADDED, "Deal") == "/deals"
    assert resolve_notification_url(NotificationType.COMMENT_ADDED, "Company") == "/companies"
    assert resolve_notification_url(NotificationType.COMMENT_ADDED, "Invoice") == "/dashboard"
    assert resolve_notification_url(NotificationType.CONTACT_CREATED) == "/contacts"
    assert resolve_notification_url(NotificationType.SYSTEM) == "/dashboard"


def test_find_groupable_includes_candidate_at_window_boundary(session, clock) -> None:
    stored = _store(session, clock, group_key="DEAL_CREATED:GENERAL")
    engine = NotificationGroupingEngine(session, clock=clock)

    clock.advance(300)
    found = engine.find_groupable(
        user_id="user-1",
        owner_scope_id="tenant-1",
        group_key="DEAL_CREATED:GENERAL",
        window_seconds=300,
    )
    assert found is not None
    assert found.id == stored.id

    clock.advance(1)
    assert (
        engine.find_groupable(
            user_id="user-1",
            owner_scope_id="tenant-1",
            group_key="DEAL_CREATED:GENERAL",
            window_seconds=300,
        )
        is None
    )


def test_find_groupable_returns_most_recent_candidate(session, clock) -> None:
    _store(session, clock, group_key="DEAL_CREATED:GENERAL")
    clock.advance(30)
    newest = _store(session, clock, group_key="DEAL_CREATED:GENERAL")
    _store(session, clock, group_key="DEAL_CREATED:GENERAL", user_id="user-2")

    found = NotificationGroupingEngine(session, clock=clock).find_groupable(
        user_id="user-1",
        owner_scope_id="tenant-1",
        group_key="DEAL_CREATED:GENERAL",
        window_seconds=300,
    )

    assert found is not None
    assert found.id == newest.id


def test_find_groupable_ignores_other_keys(session, clock) -> None:
    _store(session, clock, group_key="DEAL_UPDATED:GENERAL")

    found = NotificationGroupingEngine(session, clock=clock).find_groupable(
        user_id="user-1",
        owner_scope_id="tenant-1",
        group_key="DEAL_CREATED:GENERAL",
        window_seconds=300,
    )

    assert found is None


def test_merge_increments_count_and_recomposes_message(session, clock) -> None:
    stored = _store(session, clock, group_key="DEAL_CREATED:GENERAL", count=2)
    clock.advance(45)

    merged = NotificationGroupingEngine(session, clock=clock).merge(stored)
    session.commit()

    assert merged.id == stored.id
    assert merged.group_count == 3
    assert merged.message == "3 new deals created"
    assert merged.updated_at == clock()
    assert merged.created_at == stored.created_at
