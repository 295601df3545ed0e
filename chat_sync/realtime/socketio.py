"""Global Socket.IO server for chat clients.

Every two-party conversation maps to one room (``conversation_<a>_<b>``).
Clients identify themselves, join the room of the conversation they have
open, and from then on messages and typing notices flow through that room.

Current client convention:
- URL base: ws://<host>:8000
- Socket.IO path: ``settings.SOCKETIO_PATH`` (default ``socket.io``)
- No authentication; the client states its own user id via ``user:identify``
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING
from typing import Any

import socketio
from django.conf import settings
from rest_framework import serializers

from chat_sync.conversations.api.serializers import MessageSerializer
from chat_sync.conversations.api.serializers import SendMessageSerializer
from chat_sync.conversations.keys import room_for_conversation
from chat_sync.realtime import protocol
from chat_sync.realtime.serializers import ConversationPairSerializer
from chat_sync.realtime.serializers import IdentifySerializer
from chat_sync.realtime.serializers import TypingStartSerializer

if TYPE_CHECKING:  # import for type checking only
    from chat_sync.conversations.services import MessageBroadcaster
    from chat_sync.realtime.typing import TypingCoordinator

logger = logging.getLogger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=getattr(settings, "CHAT_CORS_ALLOWED_ORIGINS", "*"),
    logger=False,
    engineio_logger=False,
)


async def emit_to_room(
    event: str,
    payload: dict[str, Any],
    room: str,
    skip_sid: str | None = None,
) -> None:
    """Emit an event to a room, optionally excluding the originating socket."""

    await sio.emit(event, payload, room=room, skip_sid=skip_sid)


def live_room_count() -> int:
    rooms = sio.manager.rooms.get("/", {})
    # Every socket also sits in a private room named after its sid.
    return sum(1 for name in rooms if name is not None and name.startswith("conversation_"))


def _validated(serializer_class, data: Any) -> dict[str, Any]:
    serializer = serializer_class(data=data if isinstance(data, dict) else {})
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def _guarded(handler):
    """Keep one bad event from taking the connection's later events down."""

    @functools.wraps(handler)
    async def wrapper(self, sid, data=None):
        try:
            return await handler(self, sid, data)
        except serializers.ValidationError as exc:
            logger.warning("Rejected %s from %s: %s", handler.__name__, sid, exc.detail)
            return {"ok": False, "errors": exc.detail}
        except Exception:
            logger.exception("Socket.IO handler %s failed for %s", handler.__name__, sid)
            return {"ok": False, "errors": "server_error"}

    return wrapper


class ChatEventHandlers:
    """Socket.IO event handlers bound to one broadcaster and typing coordinator."""

    def __init__(
        self,
        server: socketio.AsyncServer,
        broadcaster: MessageBroadcaster,
        typing: TypingCoordinator,
    ):
        self.server = server
        self.broadcaster = broadcaster
        self.typing = typing

    def register(self) -> None:
        self.server.on("connect", self.connect)
        self.server.on("disconnect", self.disconnect)
        self.server.on(protocol.IDENTIFY, self.identify)
        self.server.on(protocol.JOIN, self.join)
        self.server.on(protocol.LEAVE, self.leave)
        self.server.on(protocol.SEND, self.send)
        self.server.on(protocol.TYPING_START, self.typing_start)
        self.server.on(protocol.TYPING_STOP, self.typing_stop)

    async def connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None):
        logger.info("Client connected: %s", sid)
        await self.server.save_session(sid, {"user_id": None})

    async def disconnect(self, sid: str, reason: Any = None):
        logger.info("Client disconnected: %s (%s)", sid, reason)
        try:
            session = await self.server.get_session(sid)
        except KeyError:
            return
        user_id = session.get("user_id") if isinstance(session, dict) else None
        if user_id is None:
            return
        try:
            await self.typing.on_disconnect(user_id)
        except Exception:
            logger.exception("Typing cleanup failed for user %s", user_id)

    @_guarded
    async def identify(self, sid: str, data: Any):
        # Accept both a bare id and ``{"userId": id}``.
        payload = data if isinstance(data, dict) else {"userId": data}
        user_id = _validated(IdentifySerializer, payload)["user_id"]

        session = await self.server.get_session(sid)
        session["user_id"] = user_id
        await self.server.save_session(sid, session)
        logger.info("User %s identified on socket %s", user_id, sid)

        await self.server.emit(
            protocol.IDENTIFIED, {"userId": user_id, "socketId": sid}, to=sid
        )
        return {"ok": True}

    @_guarded
    async def join(self, sid: str, data: Any):
        pair = _validated(ConversationPairSerializer, data)
        room = room_for_conversation(pair["user_id"], pair["recipient_id"])
        # Entering a room twice is a no-op in the manager.
        await self.server.enter_room(sid, room)
        logger.info("User %s (socket %s) joined room %s", pair["user_id"], sid, room)

        await self.server.emit(
            protocol.USER_JOINED, {"userId": pair["user_id"]}, room=room, skip_sid=sid
        )
        return {"ok": True, "room": room}

    @_guarded
    async def leave(self, sid: str, data: Any):
        pair = _validated(ConversationPairSerializer, data)
        room = room_for_conversation(pair["user_id"], pair["recipient_id"])
        await self.server.leave_room(sid, room)
        logger.info("Socket %s left room %s", sid, room)
        return {"ok": True, "room": room}

    @_guarded
    async def send(self, sid: str, data: Any):
        payload = _validated(SendMessageSerializer, data)
        message = await self.broadcaster.send(
            payload["sender_id"], payload["recipient_id"], payload["content"]
        )
        return {"ok": True, "message": dict(MessageSerializer(message).data)}

    @_guarded
    async def typing_start(self, sid: str, data: Any):
        payload = _validated(TypingStartSerializer, data)
        room = room_for_conversation(payload["user_id"], payload["recipient_id"])
        await self.typing.start(
            room,
            payload["user_id"],
            payload["display_name"],
            recipient_id=payload["recipient_id"],
            sid=sid,
        )
        return {"ok": True}

    @_guarded
    async def typing_stop(self, sid: str, data: Any):
        payload = _validated(ConversationPairSerializer, data)
        room = room_for_conversation(payload["user_id"], payload["recipient_id"])
        await self.typing.stop(
            room,
            payload["user_id"],
            recipient_id=payload["recipient_id"],
            sid=sid,
        )
        return {"ok": True}
