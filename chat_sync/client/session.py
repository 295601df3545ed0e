"""One signed-in user's chat client: connection, cache, typing and history."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from chat_sync.client.config import ChatClientConfig
from chat_sync.client.connection import CONNECTED
from chat_sync.client.connection import DISCONNECTED
from chat_sync.client.connection import ConnectionRegistry
from chat_sync.client.grouping import group_messages
from chat_sync.client.history import HistoryLoader
from chat_sync.client.store import MessagesStore
from chat_sync.client.typing import TypingCoordinator
from chat_sync.client.typing import TypingIndicator
from chat_sync.client.typing import TypingTarget
from chat_sync.conversations.keys import conversation_key
from chat_sync.conversations.models import Message
from chat_sync.realtime import protocol

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Callable

    from chat_sync.client.grouping import MessageGroup

logger = logging.getLogger(__name__)


class ChatSession:
    def __init__(
        self,
        user_id: int,
        display_name: str,
        config: ChatClientConfig | None = None,
        *,
        connection: ConnectionRegistry | None = None,
        store: MessagesStore | None = None,
        history: HistoryLoader | None = None,
        typing: TypingCoordinator | None = None,
    ):
        self.user_id = user_id
        self.display_name = display_name
        self.config = config or ChatClientConfig()
        self.connection = connection or ConnectionRegistry(
            socketio_path=self.config.socketio_path
        )
        self.store = store or MessagesStore()
        self.history = history or HistoryLoader(
            self.store, self.config, is_current=self.is_current
        )
        self.typing = typing or TypingCoordinator(
            self.connection,
            throttle=self.config.typing_throttle,
            inactivity=self.config.typing_inactivity,
        )
        self.typing_indicator = TypingIndicator(user_id)
        self.recipient_id: int | None = None
        self._outbox: list[tuple[int, str]] = []
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def conversation_key(self) -> str | None:
        if self.recipient_id is None:
            return None
        return conversation_key(self.user_id, self.recipient_id)

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def pending_messages(self) -> int:
        return len(self._outbox)

    def is_current(self, key: str) -> bool:
        return key == self.conversation_key

    async def start(self) -> None:
        if not self._unsubscribers:
            subscribe = self.connection.subscribe
            self._unsubscribers = [
                subscribe(protocol.MESSAGE_CREATED, self._on_message),
                subscribe(protocol.TYPING_STARTED, self.typing_indicator.handle_started),
                subscribe(protocol.TYPING_STOPPED, self.typing_indicator.handle_stopped),
                subscribe(CONNECTED, self._on_connected),
                subscribe(DISCONNECTED, self._on_disconnected),
            ]
        await self.connection.connect(self.config.server_url, self.user_id)

    async def close(self) -> None:
        await self.typing.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.connection.disconnect()

    async def open_conversation(self, recipient_id: int) -> None:
        """Switch the active conversation and load its history."""

        if recipient_id == self.recipient_id:
            return
        previous = self.recipient_id
        self.recipient_id = recipient_id
        self.typing.set_target(TypingTarget(self.user_id, self.display_name, recipient_id))
        self.typing_indicator.set_conversation(recipient_id)

        if previous is not None:
            await self.connection.leave_room(self.user_id, previous)
        await self.connection.join_room(self.user_id, recipient_id)
        await self.history.load(self.user_id, recipient_id)

    async def send_message(self, content: str) -> bool:
        text = content.strip()
        if self.recipient_id is None or not text:
            return False

        sent = await self.connection.send_message(self.user_id, self.recipient_id, text)
        if not sent:
            self._outbox.append((self.recipient_id, text))
            logger.info("Queued message for %s until reconnected", self.recipient_id)

        if self.typing.is_typing:
            await self.typing.set_typing(False)
        return True

    async def set_typing(self, is_typing: bool) -> None:
        await self.typing.set_typing(is_typing)

    def messages(self) -> list[Message]:
        key = self.conversation_key
        if key is None:
            return []
        return self.store.get_conversation(key) or []

    def message_groups(self) -> list[MessageGroup]:
        return group_messages(self.messages())

    def _on_message(self, payload: dict[str, Any]) -> None:
        self.store.append_message(Message.from_payload(payload))

    async def _on_connected(self) -> None:
        pending, self._outbox = self._outbox, []
        for recipient_id, text in pending:
            if not await self.connection.send_message(self.user_id, recipient_id, text):
                self._outbox.append((recipient_id, text))

    def _on_disconnected(self) -> None:
        # The server forgets typing state with the socket; so do we.
        self.typing_indicator.clear()
