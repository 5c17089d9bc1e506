"""Notification decision engine: grouping, preferences, dispatch and orchestration."""

from .channels import (
    ChannelAdapter,
    ChannelDispatcher,
    EmailChannel,
    InAppChannel,
    PushChannel,
)
from .factory import build_channel_adapters, build_notification_orchestrator
from .grouping import (
    GROUPABLE_TYPES,
    NotificationGroupingEngine,
    clamp_window,
    compose_grouped_message,
    generate_group_key,
    is_groupable,
    resolve_notification_url,
)
from .orchestrator import (
    NotificationOrchestrator,
    NotificationTimeoutError,
    NotifyOutcome,
)
from .preferences import (
    NotificationPreferenceResolver,
    get_preferences,
    mute_entity,
    set_quiet_hours,
    set_type_preference,
    toggle_channel,
    unmute_entity,
    update_preferences,
)
from .validators import PreferenceValidationError

__all__ = [
    "ChannelAdapter",
    "ChannelDispatcher",
    "EmailChannel",
    "GROUPABLE_TYPES",
    "InAppChannel",
    "NotificationGroupingEngine",
    "NotificationOrchestrator",
    "NotificationPreferenceResolver",
    "NotificationTimeoutError",
    "NotifyOutcome",
    "PreferenceValidationError",
    "PushChannel",
    "build_channel_adapters",
    "build_notification_orchestrator",
    "clamp_window",
    "compose_grouped_message",
    "generate_group_key",
    "get_preferences",
    "is_groupable",
    "mute_entity",
    "resolve_notification_url",
    "set_quiet_hours",
    "set_type_preference",
    "toggle_channel",
    "unmute_entity",
    "update_preferences",
]
