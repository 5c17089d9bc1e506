"""Validation helpers for notification preference writes."""

from notifyhub.domain.entities import SoundType
from notifyhub.utils import parse_clock_time


class PreferenceValidationError(ValueError):
    """Raised when a preference write carries invalid configuration."""


def ensure_clock_time(value: str | None, *, field_name: str) -> str | None:
    """Return ``value`` normalized as ``HH:mm`` or raise for malformed times."""

    if value is None:
        return None
    try:
        parse_clock_time(value)
    except ValueError as exc:
        raise PreferenceValidationError(
            f"{field_name} must be in HH:mm format (24-hour)"
        ) from exc
    return value.strip()


def ensure_quiet_hours_bounds(
    enabled: bool, start: str | None, end: str | None
) -> None:
    """Reject enabling quiet hours without both bounds."""

    if enabled and (start is None or end is None):
        raise PreferenceValidationError(
            "quiet_hours_start and quiet_hours_end are required to enable quiet hours"
        )


def ensure_grouping_window(value: int) -> int:
    """Return ``value`` when it is a non-negative whole number of seconds.

    Positive values outside the supported range are stored as given and
    clamped when read.
    """

    if isinstance(value, bool) or not isinstance(value, int):
        raise PreferenceValidationError("grouping_window_seconds must be an integer")
    if value < 0:
        raise PreferenceValidationError("grouping_window_seconds must not be negative")
    return value


def ensure_entity_reference(entity_type: str, entity_id: str) -> tuple[str, str]:
    entity_type = (entity_type or "").strip()
    entity_id = (entity_id or "").strip()
    if not entity_type or not entity_id:
        raise PreferenceValidationError("entity_type and entity_id are required")
    return entity_type, entity_id


def ensure_sound_type(value: object) -> SoundType:
    try:
        return SoundType(value)
    except ValueError as exc:
        allowed = ", ".join(sound.value for sound in SoundType)
        raise PreferenceValidationError(f"sound_type must be one of: {allowed}") from exc
