"""Pydantic models describing websocket notification messages."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class NotificationAckMessage(BaseModel):
    """Client message acknowledging (marking as read) a batch of notifications."""

    type: Literal["ack"]
    ids: list[int] = Field(..., min_length=1, description="Notification identifiers")

    def unique_ids(self) -> list[int]:
        """Return the list of identifiers without duplicates preserving order."""

        unique: list[int] = []
        seen: set[int] = set()
        for notification_id in self.ids:
            if notification_id in seen:
                continue
            seen.add(notification_id)
            unique.append(notification_id)
        return unique


__all__ = ["NotificationAckMessage"]
