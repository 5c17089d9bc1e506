"""Tests for settings validation and time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notifyhub.config import Settings
from notifyhub.utils import minutes_since_midnight, parse_clock_time
from notifyhub.utils.datetime import _resolve_timezone


def test_channels_disabled_without_credentials() -> None:
    settings = Settings(database_url="sqlite://")

    assert settings.email_enabled is False
    assert settings.push_enabled is False
    assert settings.notify_timeout_seconds == 5.0
    assert settings.push_ttl_seconds == 86400


def test_channels_enabled_with_credentials() -> None:
    settings = Settings(
        database_url="sqlite://",
        sendgrid_api_key="SG.fake",
        sendgrid_sender="alerts@example.com",
        vapid_public_key="public",
        vapid_private_key="private",
    )

    assert settings.email_enabled is True
    assert settings.push_enabled is True


@pytest.mark.parametrize(
    "values",
    [
        {"sendgrid_api_key": "SG.fake"},
        {"sendgrid_api_key": "SG.fake", "sendgrid_sender": "not-an-email"},
        {"vapid_public_key": "public"},
        {"notify_timeout_seconds": 0},
    ],
)
def test_invalid_settings_are_rejected(values) -> None:
    with pytest.raises(ValidationError):
        Settings(database_url="sqlite://", **values)


@pytest.mark.parametrize(
    ("value", "minutes"),
    [("00:00", 0), ("08:30", 510), ("23:59", 1439), (" 22:00 ", 1320)],
)
def test_parse_clock_time(value, minutes) -> None:
    assert parse_clock_time(value) == minutes


@pytest.mark.parametrize("value", ["24:00", "7:30", "12:60", "noon", "", None])
def test_parse_clock_time_rejects_invalid_values(value) -> None:
    with pytest.raises(ValueError):
        parse_clock_time(value)


def test_minutes_since_midnight_uses_app_timezone() -> None:
    assert minutes_since_midnight(datetime(2024, 5, 1, 23, 30, tzinfo=timezone.utc)) == 1410


@pytest.mark.parametrize(
    ("name", "offset"),
    [
        ("UTC", timedelta(0)),
        ("UTC-05:00", timedelta(hours=-5)),
        ("GMT+0530", timedelta(hours=5, minutes=30)),
    ],
)
def test_resolve_timezone_accepts_names_and_offsets(name, offset) -> None:
    moment = datetime(2024, 1, 15, 12, 0)

    assert _resolve_timezone(name).utcoffset(moment) == offset


def test_unknown_timezone_falls_back_to_utc(caplog) -> None:
    with caplog.at_level("WARNING"):
        resolved = _resolve_timezone("Mars/Olympus_Mons")

    assert resolved is timezone.utc
    assert "Mars/Olympus_Mons" in caplog.text
