"""Preference resolution and preference write use cases.

The resolver only reads; every mutation goes through the module-level use
cases below, which validate their input before anything is stored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from sqlalchemy.orm import Session

from notifyhub.domain.entities import (
    Channel,
    ChannelOverride,
    MutedEntity,
    NotificationPreference,
    NotificationType,
)
from notifyhub.infrastructure.repositories import NotificationPreferenceRepository
from notifyhub.utils import minutes_since_midnight, now_in_app_timezone, parse_clock_time

from .validators import (
    PreferenceValidationError,
    ensure_clock_time,
    ensure_entity_reference,
    ensure_grouping_window,
    ensure_quiet_hours_bounds,
    ensure_sound_type,
)

logger = logging.getLogger(__name__)

ALL_CHANNELS: tuple[Channel, ...] = (Channel.EMAIL, Channel.PUSH, Channel.IN_APP)


def in_quiet_hours(preference: NotificationPreference, now: datetime) -> bool:
    """Return ``True`` when ``now`` falls inside the quiet-hours window.

    The window is ``[start, end)`` on the wall clock; ``start > end`` wraps
    past midnight.
    """

    if not preference.quiet_hours_enabled:
        return False
    if not preference.quiet_hours_start or not preference.quiet_hours_end:
        return False

    try:
        quiet_start = parse_clock_time(preference.quiet_hours_start)
        quiet_end = parse_clock_time(preference.quiet_hours_end)
    except ValueError:
        logger.warning(
            "Ignoring malformed quiet hours for user %s", preference.user_id
        )
        return False

    current = minutes_since_midnight(now)
    if quiet_start > quiet_end:
        return current >= quiet_start or current < quiet_end
    return quiet_start <= current < quiet_end


def channel_allowed(
    preference: NotificationPreference,
    notification_type: NotificationType,
    channel: Channel,
) -> bool:
    """Apply the global toggle and then the per-type override for ``channel``."""

    if not preference.channel_enabled(channel):
        return False
    override = preference.override_for(notification_type)
    if override is not None:
        value = override.for_channel(channel)
        if value is not None:
            return value
    return True


class NotificationPreferenceResolver:
    """Decide which channels may deliver a notification to a user.

    Precedence, highest first: quiet hours, muted entity, global channel
    toggle, per-type override, global default.
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._repository = NotificationPreferenceRepository(session)
        self._clock = clock

    def get_or_create(self, user_id: str) -> NotificationPreference:
        return self._repository.get_or_create(user_id)

    def is_in_quiet_hours(self, user_id: str, *, now: datetime | None = None) -> bool:
        preference = self.get_or_create(user_id)
        return in_quiet_hours(preference, now or self._clock())

    def is_entity_muted(self, user_id: str, entity_type: str, entity_id: str) -> bool:
        return self.get_or_create(user_id).is_muted(entity_type, entity_id)

    def should_notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        channel: Channel,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> bool:
        preference = self.get_or_create(user_id)
        if self._suppressed(preference, entity_type, entity_id):
            return False
        return channel_allowed(preference, notification_type, channel)

    def get_enabled_channels(
        self,
        user_id: str,
        notification_type: NotificationType,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> set[Channel]:
        preference = self.get_or_create(user_id)
        if self._suppressed(preference, entity_type, entity_id):
            return set()
        return {
            channel
            for channel in ALL_CHANNELS
            if channel_allowed(preference, notification_type, channel)
        }

    def _suppressed(
        self,
        preference: NotificationPreference,
        entity_type: str | None,
        entity_id: str | None,
    ) -> bool:
        if in_quiet_hours(preference, self._clock()):
            logger.debug("User %s is in quiet hours", preference.user_id)
            return True
        if entity_type and entity_id and preference.is_muted(entity_type, entity_id):
            logger.debug(
                "User %s muted %s %s", preference.user_id, entity_type, entity_id
            )
            return True
        return False


_UPDATABLE_FIELDS = frozenset(
    {
        "email_enabled",
        "push_enabled",
        "in_app_enabled",
        "quiet_hours_enabled",
        "quiet_hours_start",
        "quiet_hours_end",
        "grouping_enabled",
        "grouping_window_seconds",
        "sound_enabled",
        "sound_type",
    }
)


def get_preferences(session: Session, *, user_id: str) -> NotificationPreference:
    """Return the preferences of ``user_id``, creating defaults on first access."""

    return NotificationPreferenceRepository(session).get_or_create(user_id)


def update_preferences(
    session: Session, *, user_id: str, **fields: object
) -> NotificationPreference:
    """Apply a partial update; ``None`` values leave a field unchanged."""

    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise PreferenceValidationError(
            f"Unknown preference fields: {', '.join(sorted(unknown))}"
        )

    repository = NotificationPreferenceRepository(session)
    current = repository.get_or_create(user_id)
    changes = {name: value for name, value in fields.items() if value is not None}

    for name in (
        "email_enabled",
        "push_enabled",
        "in_app_enabled",
        "quiet_hours_enabled",
        "grouping_enabled",
        "sound_enabled",
    ):
        if name in changes and not isinstance(changes[name], bool):
            raise PreferenceValidationError(f"{name} must be a boolean")
    if "quiet_hours_start" in changes:
        changes["quiet_hours_start"] = ensure_clock_time(
            changes["quiet_hours_start"], field_name="quiet_hours_start"
        )
    if "quiet_hours_end" in changes:
        changes["quiet_hours_end"] = ensure_clock_time(
            changes["quiet_hours_end"], field_name="quiet_hours_end"
        )
    if "grouping_window_seconds" in changes:
        changes["grouping_window_seconds"] = ensure_grouping_window(
            changes["grouping_window_seconds"]
        )

    if "sound_type" in changes:
        changes["sound_type"] = ensure_sound_type(changes["sound_type"])

    updated = replace(current, **changes)
    ensure_quiet_hours_bounds(
        updated.quiet_hours_enabled, updated.quiet_hours_start, updated.quiet_hours_end
    )
    saved = repository.update(updated)
    logger.info("Updated notification preferences for user %s", user_id)
    return saved


def toggle_channel(
    session: Session, *, user_id: str, channel: Channel, enabled: bool
) -> NotificationPreference:
    """Turn a delivery channel on or off globally."""

    field_name = {
        Channel.EMAIL: "email_enabled",
        Channel.PUSH: "push_enabled",
        Channel.IN_APP: "in_app_enabled",
    }[Channel(channel)]
    return update_preferences(session, user_id=user_id, **{field_name: enabled})


def set_type_preference(
    session: Session,
    *,
    user_id: str,
    notification_type: NotificationType,
    email_enabled: bool | None = None,
    push_enabled: bool | None = None,
    in_app_enabled: bool | None = None,
) -> NotificationPreference:
    """Replace the channel override for ``notification_type``.

    Passing no channel value at all removes the override.
    """

    try:
        notification_type = NotificationType(notification_type)
    except ValueError as exc:
        raise PreferenceValidationError(
            f"Unknown notification type: {notification_type}"
        ) from exc

    repository = NotificationPreferenceRepository(session)
    current = repository.get_or_create(user_id)
    override = ChannelOverride(
        email_enabled=email_enabled,
        push_enabled=push_enabled,
        in_app_enabled=in_app_enabled,
    )
    type_preferences = dict(current.type_preferences)
    if override.is_empty():
        type_preferences.pop(notification_type, None)
    else:
        type_preferences[notification_type] = override
    return repository.update(replace(current, type_preferences=type_preferences))


def set_quiet_hours(
    session: Session, *, user_id: str, start: str, end: str, enabled: bool
) -> NotificationPreference:
    """Configure the quiet-hours window."""

    return update_preferences(
        session,
        user_id=user_id,
        quiet_hours_start=start,
        quiet_hours_end=end,
        quiet_hours_enabled=enabled,
    )


def mute_entity(
    session: Session, *, user_id: str, entity_type: str, entity_id: str
) -> NotificationPreference:
    """Stop all notifications about one entity."""

    entity = MutedEntity(*ensure_entity_reference(entity_type, entity_id))
    repository = NotificationPreferenceRepository(session)
    current = repository.get_or_create(user_id)
    if entity in current.muted_entities:
        return current
    logger.info("User %s muted %s %s", user_id, entity.entity_type, entity.entity_id)
    return repository.update(
        replace(current, muted_entities=current.muted_entities | {entity})
    )


def unmute_entity(
    session: Session, *, user_id: str, entity_type: str, entity_id: str
) -> NotificationPreference:
    entity = MutedEntity(*ensure_entity_reference(entity_type, entity_id))
    repository = NotificationPreferenceRepository(session)
    current = repository.get_or_create(user_id)
    if entity not in current.muted_entities:
        return current
    return repository.update(
        replace(current, muted_entities=current.muted_entities - {entity})
    )


__all__ = [
    "ALL_CHANNELS",
    "NotificationPreferenceResolver",
    "channel_allowed",
    "get_preferences",
    "in_quiet_hours",
    "mute_entity",
    "set_quiet_hours",
    "set_type_preference",
    "toggle_channel",
    "unmute_entity",
    "update_preferences",
]
