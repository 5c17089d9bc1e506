"""Helpers for working with timezone-aware datetimes and wall-clock times."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notifyhub.config import get_settings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEZONE: Final[str] = "UTC"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
CLOCK_TIME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^([0-1][0-9]|2[0-3]):([0-5][0-9])$"
)


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the ``APP_TIMEZONE`` zone used for quiet hours.

    Accepts IANA names and ``UTC+HH:MM`` style offsets; anything else, or an
    empty value, resolves to UTC.
    """

    settings = get_settings()
    tz_name = (settings.app_timezone or "").strip() or _DEFAULT_TIMEZONE
    return _resolve_timezone(tz_name)


def now_in_app_timezone() -> datetime:
    """Return the current time localized to the configured timezone."""

    return datetime.now(tz=get_app_timezone())


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in the configured timezone."""

    if value is None:
        return None

    tz = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def to_storage_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` as a naive UTC datetime for ``DATETIME`` columns.

    Several backends drop timezone information, so rows keep UTC wall time.
    Local wall time would repeat across a DST fall-back and break ordering.
    Naive inputs are read as app-timezone local time.
    """

    localized = ensure_app_timezone(value)
    if localized is None:
        return None
    return localized.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage_datetime(value: datetime | None) -> datetime | None:
    """Inverse of :func:`to_storage_datetime`, localized to the app timezone."""

    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).astimezone(get_app_timezone())


def parse_clock_time(value: str) -> int:
    """Return the minutes since midnight for an ``HH:mm`` (24h) string.

    Raises ``ValueError`` when ``value`` is not a valid wall-clock time.
    """

    match = CLOCK_TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"'{value}' is not a valid HH:mm time")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_since_midnight(value: datetime) -> int:
    """Return the wall-clock minute of ``value`` in the application timezone."""

    localized = ensure_app_timezone(value)
    return localized.hour * 60 + localized.minute


def _resolve_timezone(tz_name: str) -> tzinfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        pass

    match = _OFFSET_PATTERN.match(tz_name)
    if match is not None:
        offset = timedelta(
            hours=int(match.group("hours")), minutes=int(match.group("minutes") or 0)
        )
        return timezone(-offset if match.group("sign") == "-" else offset)

    logger.warning(
        "Unknown APP_TIMEZONE '%s'; falling back to %s", tz_name, _DEFAULT_TIMEZONE
    )
    return timezone.utc
