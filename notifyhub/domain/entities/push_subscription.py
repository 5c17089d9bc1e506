"""Domain entity representing a registered Web Push endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class PushSubscription:
    """Browser or device endpoint able to receive push messages for a user."""

    id: int | None
    user_id: str
    endpoint: str
    keys: dict[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def subscription_info(self) -> dict[str, object]:
        """Return the structure expected by Web Push senders."""

        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.keys.get("p256dh", ""),
                "auth": self.keys.get("auth", ""),
            },
        }


__all__ = ["PushSubscription"]
