"""Conversation value types.

Messages live in memory only (see ``store.py``); nothing here is a Django
model, so the app ships no migrations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from typing import Any

# Reserved sender id for messages written by the system rather than a person.
SYSTEM_SENDER_ID = 0


@dataclass(frozen=True)
class Message:
    id: str
    sender_id: int
    recipient_id: int
    content: str
    timestamp: datetime

    @property
    def is_system(self) -> bool:
        return self.sender_id == SYSTEM_SENDER_ID

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Message:
        """Build a message from its wire shape (camelCase keys, ISO timestamp)."""

        return cls(
            id=str(payload["id"]),
            sender_id=int(payload["senderId"]),
            recipient_id=int(payload["recipientId"]),
            content=str(payload["content"]),
            timestamp=parse_timestamp(payload["timestamp"]),
        )


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
