"""Domain event handed to the notification orchestrator by producers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .notification import NotificationType


@dataclass(frozen=True)
class NotificationEvent:
    """Something happened that a user may need to hear about."""

    type: NotificationType
    title: str
    message: str
    user_id: str
    owner_scope_id: str
    entity_type: str | None = None
    entity_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", NotificationType(self.type))

    @property
    def has_entity(self) -> bool:
        return bool(self.entity_type and self.entity_id)


__all__ = ["NotificationEvent"]
