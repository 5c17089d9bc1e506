"""Integration tests for the notifications websocket endpoint."""

from __future__ import annotations

from concurrent.futures import wait

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from notifyhub.domain.entities import Notification, NotificationEvent, NotificationType
from notifyhub.infrastructure.models import NotificationModel
from notifyhub.infrastructure.repositories import NotificationRepository

WS_URL = "/notifications/ws?user_id=user-1&owner_scope_id=tenant-1"


@pytest.fixture()
def client(engine):
    from main import create_app

    app = create_app(engine=engine)
    with TestClient(app) as test_client:
        yield test_client


def _store(session_factory, **overrides) -> Notification:
    values = {
        "id": None,
        "user_id": "user-1",
        "owner_scope_id": "tenant-1",
        "type": NotificationType.MENTION,
        "title": "You were mentioned",
        "message": "Ana mentioned you",
    }
    values.update(overrides)
    with session_factory() as session:
        return NotificationRepository(session).create(Notification(**values))


def test_connection_requires_identity(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/notifications/ws?user_id=user-1"):
            pass

    assert exc_info.value.code == 1008


def test_init_lists_active_unread_notifications(client, session_factory) -> None:
    unread = _store(session_factory)
    _store(session_factory, is_read=True)
    _store(session_factory, is_muted=True)
    _store(session_factory, owner_scope_id="tenant-2")

    with client.websocket_connect(WS_URL) as websocket:
        message = websocket.receive_json()

    assert message["type"] == "init"
    assert [item["id"] for item in message["data"]] == [unread.id]
    assert message["data"][0]["type"] == "MENTION"


def test_ping_and_ack(client, session_factory) -> None:
    stored = _store(session_factory)

    with client.websocket_connect(WS_URL) as websocket:
        websocket.receive_json()

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "ack", "ids": []})
        websocket.send_json({"type": "ack", "ids": [stored.id, stored.id]})
        assert websocket.receive_json() == {"type": "ack", "data": {"updated": 1}}

    with session_factory() as session:
        model = session.get(NotificationModel, stored.id)
        assert model.is_read is True


def test_orchestrated_notification_reaches_open_socket(client) -> None:
    orchestrator = client.app.state.notification_orchestrator
    manager = client.app.state.notification_manager

    with client.websocket_connect(WS_URL) as websocket:
        websocket.receive_json()
        assert manager.is_connected("user-1", "tenant-1")

        event = NotificationEvent(
            type=NotificationType.DEAL_CREATED,
            title="New deal",
            message="Acme deal was created",
            user_id="user-1",
            owner_scope_id="tenant-1",
        )
        orchestrator.notify(event)
        created = websocket.receive_json()
        orchestrator.notify(event)
        updated = websocket.receive_json()

    assert created["type"] == "notification"
    assert created["data"]["group_count"] == 1
    assert updated["type"] == "notification.updated"
    assert updated["data"]["message"] == "2 new deals created"
    assert updated["data"]["id"] == created["data"]["id"]


def test_socket_only_receives_notifications_of_its_scope(client) -> None:
    orchestrator = client.app.state.notification_orchestrator
    manager = client.app.state.notification_manager

    with client.websocket_connect(
        "/notifications/ws?user_id=user-1&owner_scope_id=tenant-B"
    ) as websocket:
        websocket.receive_json()
        assert manager.is_connected("user-1", "tenant-B")
        assert not manager.is_connected("user-1", "tenant-A")

        other_scope = orchestrator.process(
            NotificationEvent(
                type=NotificationType.MENTION,
                title="Mention",
                message="tenant A only",
                user_id="user-1",
                owner_scope_id="tenant-A",
            )
        )
        wait(other_scope.deliveries)
        orchestrator.notify(
            NotificationEvent(
                type=NotificationType.MENTION,
                title="Mention",
                message="tenant B only",
                user_id="user-1",
                owner_scope_id="tenant-B",
            )
        )
        received = websocket.receive_json()

    assert received["type"] == "notification"
    assert received["data"]["owner_scope_id"] == "tenant-B"
    assert received["data"]["message"] == "tenant B only"
