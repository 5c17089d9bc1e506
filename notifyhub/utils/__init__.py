"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_app_timezone,
    from_storage_datetime,
    get_app_timezone,
    minutes_since_midnight,
    now_in_app_timezone,
    parse_clock_time,
    to_storage_datetime,
)

__all__ = [
    "ensure_app_timezone",
    "from_storage_datetime",
    "get_app_timezone",
    "minutes_since_midnight",
    "now_in_app_timezone",
    "parse_clock_time",
    "to_storage_datetime",
]
