"""Single shared Socket.IO connection for a client process.

The registry owns at most one transport. It remembers which conversation rooms
the client wants to be in, so a dropped transport can be resumed by simply
re-issuing every join once the transport reports ``connect`` again.
"""

from __future__ import annotations

import enum
import functools
import inspect
import logging
from collections import defaultdict
from typing import TYPE_CHECKING
from typing import Any

import socketio

from chat_sync.conversations.keys import conversation_key
from chat_sync.realtime import protocol

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Local lifecycle notifications, delivered through the same listener map as
# server events.
CONNECTED = "connect"
DISCONNECTED = "disconnect"

SERVER_EVENTS = (
    protocol.IDENTIFIED,
    protocol.USER_JOINED,
    protocol.MESSAGE_CREATED,
    protocol.TYPING_STARTED,
    protocol.TYPING_STOPPED,
)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def _default_transport() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=True, logger=False, engineio_logger=False)


class ConnectionRegistry:
    def __init__(
        self,
        transport_factory: Callable[[], Any] | None = None,
        socketio_path: str = "socket.io",
    ):
        self._transport_factory = transport_factory or _default_transport
        self._socketio_path = socketio_path
        self.transport: Any | None = None
        self.state = ConnectionState.DISCONNECTED
        self.user_id: int | None = None
        # conversation key -> (user_id, recipient_id) as originally joined
        self._joined: dict[str, tuple[int, int]] = {}
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def joined_rooms(self) -> set[str]:
        return set(self._joined)

    async def connect(self, url: str, user_id: int | None = None) -> Any:
        """Connect once; later calls return the existing transport.

        A repeated call while connecting is a no-op. While connected, a
        different ``user_id`` re-identifies immediately.
        """

        if self.state is not ConnectionState.DISCONNECTED and self.transport is not None:
            if (
                self.state is ConnectionState.CONNECTED
                and user_id is not None
                and user_id != self.user_id
            ):
                await self.identify(user_id)
            return self.transport

        if user_id is not None:
            self.user_id = user_id
        if self.transport is None:
            self.transport = self._transport_factory()
            self._bind(self.transport)

        self.state = ConnectionState.CONNECTING
        try:
            await self.transport.connect(
                url,
                transports=["websocket", "polling"],
                socketio_path=self._socketio_path,
            )
        except socketio.exceptions.ConnectionError as exc:
            logger.warning("Socket connection to %s failed: %s", url, exc)
            self.state = ConnectionState.DISCONNECTED
            raise
        return self.transport

    async def disconnect(self) -> None:
        """Explicit teardown: forget the user and every joined room."""

        self._joined.clear()
        self.user_id = None
        transport, self.transport = self.transport, None
        self.state = ConnectionState.DISCONNECTED
        if transport is not None:
            await transport.disconnect()

    def _bind(self, transport: Any) -> None:
        transport.on("connect", self._on_connect)
        transport.on("disconnect", self._on_disconnect)
        transport.on("connect_error", self._on_connect_error)
        for event in SERVER_EVENTS:
            transport.on(event, functools.partial(self._dispatch, event))

    async def _on_connect(self) -> None:
        self.state = ConnectionState.CONNECTED
        logger.info("Socket connected")

        if self.user_id is not None:
            await self.identify(self.user_id)

        if self._joined:
            logger.info("Rejoining conversations: %s", sorted(self._joined))
        for key, (user_id, recipient_id) in list(self._joined.items()):
            try:
                await self.transport.emit(
                    protocol.JOIN, {"userId": user_id, "recipientId": recipient_id}
                )
            except Exception:
                logger.exception("Failed to rejoin conversation %s", key)

        await self._dispatch(CONNECTED)

    async def _on_disconnect(self, *args: Any) -> None:
        # Joined rooms are kept so the next connect can replay them.
        self.state = ConnectionState.DISCONNECTED
        logger.info("Socket disconnected")
        await self._dispatch(DISCONNECTED)

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Socket connection error: %s", data)
        if self.state is ConnectionState.CONNECTING:
            self.state = ConnectionState.DISCONNECTED

    async def _dispatch(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for %s failed", event)

    def subscribe(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        """Register ``listener`` for ``event``; returns an unsubscribe callable."""

        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def emit(self, event: str, data: Any) -> bool:
        if not self.is_connected or self.transport is None:
            logger.warning("Socket not connected; dropping %s", event)
            return False
        await self.transport.emit(event, data)
        return True

    async def identify(self, user_id: int) -> None:
        self.user_id = user_id
        await self.emit(protocol.IDENTIFY, user_id)

    async def join_room(self, user_id: int, recipient_id: int) -> bool:
        key = conversation_key(user_id, recipient_id)
        if key in self._joined:
            return False
        self._joined[key] = (user_id, recipient_id)
        if self.is_connected:
            await self.emit(protocol.JOIN, {"userId": user_id, "recipientId": recipient_id})
            logger.debug("Joined conversation %s", key)
        else:
            logger.debug("Queued conversation join %s until connected", key)
        return True

    async def leave_room(self, user_id: int, recipient_id: int) -> bool:
        key = conversation_key(user_id, recipient_id)
        if key not in self._joined:
            return False
        del self._joined[key]
        if self.is_connected:
            await self.emit(protocol.LEAVE, {"userId": user_id, "recipientId": recipient_id})
        logger.debug("Left conversation %s", key)
        return True

    async def send_message(self, sender_id: int, recipient_id: int, content: str) -> bool:
        return await self.emit(
            protocol.SEND,
            {"senderId": sender_id, "recipientId": recipient_id, "content": content},
        )

    async def start_typing(
        self, user_id: int, recipient_id: int, display_name: str
    ) -> bool:
        # Typing notices are room-scoped; make sure we are in the room.
        await self.join_room(user_id, recipient_id)
        return await self.emit(
            protocol.TYPING_START,
            {"userId": user_id, "recipientId": recipient_id, "displayName": display_name},
        )

    async def stop_typing(self, user_id: int, recipient_id: int) -> bool:
        return await self.emit(
            protocol.TYPING_STOP, {"userId": user_id, "recipientId": recipient_id}
        )
