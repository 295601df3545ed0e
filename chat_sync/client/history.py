"""Conversation history fetch over HTTP."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from chat_sync.client.config import ChatClientConfig
from chat_sync.conversations.keys import conversation_key
from chat_sync.conversations.models import Message

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Callable

    from chat_sync.client.store import MessagesStore

logger = logging.getLogger(__name__)


class HistoryUnavailableError(Exception):
    """Raised when the history endpoint answers with an unusable body."""


def _log_failure(key: str, exc: Exception) -> None:
    logger.warning("Failed to load messages for %s: %s", key, exc)


class HistoryLoader:
    """Loads a conversation into the store, at most one fetch per conversation.

    Results are applied under the key they were requested for, and only if
    that conversation is still the active one when the response arrives.
    """

    def __init__(
        self,
        store: MessagesStore,
        config: ChatClientConfig | None = None,
        *,
        is_current: Callable[[str], bool] | None = None,
        error_sink: Callable[[str, Exception], None] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._store = store
        self.config = config or ChatClientConfig()
        self._is_current = is_current or (lambda key: True)
        self._error_sink = error_sink or _log_failure
        self._http_client = http_client
        self._in_flight: set[str] = set()

    def is_loading(self, user_id: int, recipient_id: int) -> bool:
        return conversation_key(user_id, recipient_id) in self._in_flight

    async def load(self, user_id: int, recipient_id: int) -> list[Message] | None:
        """Fetch and store history; None if short-circuited or stale."""

        key = conversation_key(user_id, recipient_id)
        if key in self._in_flight:
            logger.debug("History fetch for %s already in progress", key)
            return None

        self._in_flight.add(key)
        try:
            messages = await self._fetch(user_id, recipient_id)
        except (httpx.HTTPError, HistoryUnavailableError, ValueError) as exc:
            self._error_sink(key, exc)
            messages = []
        finally:
            self._in_flight.discard(key)

        if not self._is_current(key):
            logger.debug("Discarding stale history for %s", key)
            return None

        # Live messages that arrived while the request was in flight are kept.
        fetched_ids = {m.id for m in messages}
        live = [m for m in self._store.get_conversation(key) or [] if m.id not in fetched_ids]
        merged = messages + live
        self._store.replace_conversation(key, merged)
        return merged

    async def _fetch(self, user_id: int, recipient_id: int) -> list[Message]:
        params = {"userId": user_id, "recipientId": recipient_id}
        if self._http_client is not None:
            response = await self._http_client.get(self.config.history_path, params=params)
        else:
            async with httpx.AsyncClient(
                base_url=self.config.server_url,
                timeout=self.config.request_timeout,
            ) as client:
                response = await client.get(self.config.history_path, params=params)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict) or "error" in data:
            msg = f"Unexpected history response: {data!r}"
            raise HistoryUnavailableError(msg)
        try:
            return [Message.from_payload(item) for item in data.get("messages", [])]
        except (KeyError, TypeError) as exc:
            msg = "Malformed message in history response"
            raise HistoryUnavailableError(msg) from exc
