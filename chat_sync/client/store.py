from __future__ import annotations

from typing import TYPE_CHECKING

from chat_sync.conversations.keys import conversation_key

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from chat_sync.conversations.models import Message


class MessagesStore:
    """Client-side cache of conversations, keyed by conversation key.

    Owned by a ``ChatSession`` and handed to the collaborators that need it;
    the only mutations are ``append_message`` and ``replace_conversation``.
    Conversation lists are replaced, never mutated in place, so a list handed
    out earlier stays a stable snapshot.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, tuple[Message, ...]] = {}

    def get_conversation(self, key: str) -> list[Message] | None:
        """Messages for ``key``; None when nothing was ever loaded or received."""

        messages = self._conversations.get(key)
        return list(messages) if messages is not None else None

    def append_message(self, message: Message) -> bool:
        """Add a live message; duplicates (same id) are ignored."""

        key = conversation_key(message.sender_id, message.recipient_id)
        existing = self._conversations.get(key, ())
        if any(m.id == message.id for m in existing):
            return False
        self._conversations[key] = (*existing, message)
        return True

    def replace_conversation(self, key: str, messages: Iterable[Message]) -> None:
        seen: set[str] = set()
        unique = []
        for message in messages:
            if message.id in seen:
                continue
            seen.add(message.id)
            unique.append(message)
        self._conversations[key] = tuple(unique)
