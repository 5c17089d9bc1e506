"""Aggregate application use cases."""

from .notifications import (
    NotificationOrchestrator,
    NotificationPreferenceResolver,
    build_notification_orchestrator,
    get_preferences,
    mute_entity,
    set_quiet_hours,
    set_type_preference,
    toggle_channel,
    unmute_entity,
    update_preferences,
)

__all__ = [
    "NotificationOrchestrator",
    "NotificationPreferenceResolver",
    "build_notification_orchestrator",
    "get_preferences",
    "mute_entity",
    "set_quiet_hours",
    "set_type_preference",
    "toggle_channel",
    "unmute_entity",
    "update_preferences",
]
