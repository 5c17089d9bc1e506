"""Tests for channel adapters and the dispatcher."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from pywebpush import WebPushException

from notifyhub.application.use_cases.notifications import (
    ChannelDispatcher,
    EmailChannel,
    InAppChannel,
    PushChannel,
)
from notifyhub.config import Settings
from notifyhub.domain.entities import Channel, Notification, NotificationType
from notifyhub.infrastructure import push as push_module
from notifyhub.infrastructure.notifications import (
    NotificationConnectionManager,
    NotificationPublisher,
)
from notifyhub.infrastructure.push import WebPushSender

KEYS = {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA", "auth": "tBHItJI5svbpez7KI4CCXg"}


def _notification(**overrides) -> Notification:
    values = {
        "id": 7,
        "user_id": "user-1",
        "owner_scope_id": "tenant-1",
        "type": NotificationType.DEAL_CREATED,
        "title": "New deal",
        "message": "Acme deal was created",
        "entity_type": "Deal",
        "entity_id": "deal-1",
        "group_key": "DEAL_CREATED:Deal:deal-1",
    }
    values.update(overrides)
    return Notification(**values)


@pytest.fixture()
def push_channel(session_factory):
    settings = Settings(
        database_url="sqlite://",
        vapid_public_key="public-key",
        vapid_private_key="private-key",
    )
    return PushChannel(session_factory, WebPushSender(settings))


def test_dispatcher_isolates_failures(executor, make_adapter) -> None:
    healthy = make_adapter()
    broken = make_adapter(fail=True)
    dispatcher = ChannelDispatcher({Channel.EMAIL: broken, Channel.IN_APP: healthy}, executor)

    futures = dispatcher.dispatch(_notification(), [Channel.EMAIL, Channel.IN_APP])

    assert [future.result() for future in futures] == [False, True]
    assert len(healthy.delivered) == 1
    assert len(broken.delivered) == 1


def test_dispatcher_skips_channels_without_adapter(executor, make_adapter) -> None:
    adapter = make_adapter()
    dispatcher = ChannelDispatcher({Channel.IN_APP: adapter}, executor)

    futures = dispatcher.dispatch(_notification(), {Channel.PUSH, Channel.IN_APP})

    assert len(futures) == 1
    assert futures[0].result() is True
    assert dispatcher.channels == frozenset({Channel.IN_APP})


def test_push_sends_rich_payload(push_channel, monkeypatch) -> None:
    sent = []
    monkeypatch.setattr(push_module, "webpush", lambda **kwargs: sent.append(kwargs))
    push_channel.subscribe("user-1", "https://push.example.com/a", KEYS, "Firefox")

    push_channel.deliver(_notification(group_count=3, message="3 new deals created"))

    assert len(sent) == 1
    assert sent[0]["subscription_info"]["endpoint"] == "https://push.example.com/a"
    assert sent[0]["vapid_claims"] == {"sub": "mailto:admin@notifyhub.local"}
    payload = json.loads(sent[0]["data"])
    assert payload["title"] == "New deal"
    assert payload["body"] == "3 new deals created"
    assert payload["data"]["url"] == "/deals"
    assert payload["data"]["group_count"] == 3
    assert payload["data"]["entity_id"] == "deal-1"
    assert "timestamp" in payload["data"]
    assert [action["action"] for action in payload["actions"]] == ["view", "close"]


def test_push_removes_gone_subscriptions(push_channel, monkeypatch) -> None:
    def _webpush(subscription_info, **_kwargs):
        if subscription_info["endpoint"].endswith("/gone"):
            raise WebPushException("gone", response=SimpleNamespace(status_code=410))

    monkeypatch.setattr(push_module, "webpush", _webpush)
    push_channel.subscribe("user-1", "https://push.example.com/gone", KEYS)
    push_channel.subscribe("user-1", "https://push.example.com/live", KEYS)

    delivered = push_channel.send_to_all_devices("user-1", "Hello", "World")

    assert delivered == 1
    endpoints = [s.endpoint for s in push_channel.list_subscriptions("user-1")]
    assert endpoints == ["https://push.example.com/live"]


def test_push_keeps_subscription_on_transient_failure(push_channel, monkeypatch) -> None:
    def _webpush(**_kwargs):
        raise WebPushException("server error", response=SimpleNamespace(status_code=500))

    monkeypatch.setattr(push_module, "webpush", _webpush)
    push_channel.subscribe("user-1", "https://push.example.com/a", KEYS)

    assert push_channel.send_to_all_devices("user-1", "Hello", "World") == 0
    assert len(push_channel.list_subscriptions("user-1")) == 1


def test_push_without_subscriptions_sends_nothing(push_channel, monkeypatch) -> None:
    monkeypatch.setattr(push_module, "webpush", pytest.fail)

    assert push_channel.send_to_all_devices("user-1", "Hello", "World") == 0


def test_subscription_management(push_channel) -> None:
    first = push_channel.subscribe("user-1", "https://push.example.com/a", KEYS)
    again = push_channel.subscribe(
        "user-1", "https://push.example.com/a", {**KEYS, "auth": "rotated"}
    )
    push_channel.subscribe("user-1", "https://push.example.com/b", KEYS)

    assert again.id == first.id
    assert again.keys["auth"] == "rotated"

    with pytest.raises(ValueError):
        push_channel.unsubscribe("user-2", "https://push.example.com/a")
    push_channel.unsubscribe("user-1", "https://push.example.com/a")
    assert len(push_channel.list_subscriptions("user-1")) == 1

    assert push_channel.delete_all_subscriptions("user-1") == 1
    assert push_channel.list_subscriptions("user-1") == []


def test_subscribe_requires_keys(push_channel) -> None:
    with pytest.raises(ValueError):
        push_channel.subscribe("user-1", "https://push.example.com/a", {"p256dh": "x"})


def test_email_channel_uses_recipient_lookup() -> None:
    sent = []
    channel = EmailChannel(
        {"user-1": "ana@example.com"}.get,
        sender=lambda recipient, notification: sent.append((recipient, notification.id)) or True,
    )

    channel.deliver(_notification())
    channel.deliver(_notification(user_id="user-2"))

    assert sent == [("ana@example.com", 7)]


def test_in_app_channel_without_connection_is_a_no_op() -> None:
    manager = NotificationConnectionManager()
    publisher = NotificationPublisher(manager)

    InAppChannel(publisher).deliver(_notification())

    assert publisher.dispatch(_notification()) is False
    assert not manager.is_connected("user-1", "tenant-1")


def test_push_forwards_producer_data(push_channel, monkeypatch) -> None:
    sent = []
    monkeypatch.setattr(push_module, "webpush", lambda **kwargs: sent.append(kwargs))
    push_channel.subscribe("user-1", "https://push.example.com/a", KEYS)

    push_channel.deliver(_notification(), {"deal_stage": "won", "type": "spoofed"})

    payload = json.loads(sent[0]["data"])
    assert payload["data"]["deal_stage"] == "won"
    assert payload["data"]["type"] == "DEAL_CREATED"


def test_dispatcher_passes_data_to_adapters(executor, make_adapter) -> None:
    adapter = make_adapter()
    dispatcher = ChannelDispatcher({Channel.PUSH: adapter}, executor)

    futures = dispatcher.dispatch(_notification(), [Channel.PUSH], data={"source": "import"})
    futures[0].result()

    assert adapter.data == [{"source": "import"}]
