"""Two client sessions talking through the server handlers over an in-memory link."""

from __future__ import annotations

import asyncio
import itertools

import httpx
import pytest

from chat_sync.client.config import ChatClientConfig
from chat_sync.client.connection import ConnectionRegistry
from chat_sync.client.history import HistoryLoader
from chat_sync.client.session import ChatSession
from chat_sync.client.typing import TypingCoordinator as ClientTyping
from chat_sync.conversations.api.serializers import MessageSerializer
from chat_sync.conversations.keys import room_for_conversation
from chat_sync.conversations.services import MessageBroadcaster
from chat_sync.conversations.store import ConversationStore
from chat_sync.realtime import protocol
from chat_sync.realtime.events.messages import build_message_payload
from chat_sync.realtime.socketio import ChatEventHandlers
from chat_sync.realtime.typing import TypingCoordinator as ServerTyping
from tests.fakes import FakeScheduler
from tests.fakes import FakeSocketServer
from tests.fakes import FakeTransport
from tests.fakes import drain


class LoopbackServer(FakeSocketServer):
    def __init__(self) -> None:
        super().__init__()
        self.clients: dict[str, LoopbackTransport] = {}

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None):
        await super().emit(event, data, to=to, room=room, skip_sid=skip_sid)
        for sid in sorted(self.emitted[-1].recipients):
            client = self.clients.get(sid)
            if client is not None and client.connected and event in client.handlers:
                await client.fire(event, data)


class LoopbackTransport(FakeTransport):
    _sids = itertools.count(1)

    def __init__(self, server: LoopbackServer):
        super().__init__()
        self.server = server
        self.sid: str | None = None
        self.connected = False

    async def connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        self.sid = f"sid{next(self._sids)}"
        self.server.clients[self.sid] = self
        await self.server.handlers["connect"](self.sid, {})
        self.connected = True
        await self.fire("connect")

    async def drop(self):
        self.connected = False
        await self.server.handlers["disconnect"](self.sid, "transport close")
        for members in self.server.rooms.values():
            members.discard(self.sid)
        await self.fire("disconnect")

    async def emit(self, event, data=None):
        await super().emit(event, data)
        if self.connected:
            await self.server.handlers[event](self.sid, data)


@pytest.fixture
def server_side():
    server = LoopbackServer()

    async def deliver(message):
        await server.emit(
            protocol.MESSAGE_CREATED,
            build_message_payload(message),
            room=room_for_conversation(message.sender_id, message.recipient_id),
        )

    broadcaster = MessageBroadcaster(ConversationStore(), deliver=deliver)
    scheduler = FakeScheduler()
    typing = ServerTyping(server.emit, timeout=5.0, schedule=scheduler)
    ChatEventHandlers(server, broadcaster, typing).register()
    return server, broadcaster, scheduler


def _history_handler(broadcaster):
    def handler(request):
        params = request.url.params
        messages = broadcaster.history(int(params["userId"]), int(params["recipientId"]))
        return httpx.Response(
            200, json={"messages": MessageSerializer(messages, many=True).data}
        )

    return handler


def _session(server_side, user_id, name):
    server, broadcaster, _ = server_side
    transport = LoopbackTransport(server)
    config = ChatClientConfig(server_url="http://chat.test")
    connection = ConnectionRegistry(transport_factory=lambda: transport)
    scheduler = FakeScheduler()
    chat = ChatSession(
        user_id,
        name,
        config,
        connection=connection,
        typing=ClientTyping(connection, clock=scheduler.time, schedule=scheduler),
    )
    chat.history = HistoryLoader(
        chat.store,
        config,
        is_current=chat.is_current,
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(_history_handler(broadcaster)),
            base_url=config.server_url,
        ),
    )
    return chat, transport, scheduler


def test_message_reaches_both_participants(server_side):
    ann, _, _ = _session(server_side, 1, "Ann")
    bob, _, _ = _session(server_side, 2, "Bob")
    eve, _, _ = _session(server_side, 3, "Eve")

    async def scenario():
        for chat, peer in ((ann, 2), (bob, 1), (eve, 1)):
            await chat.start()
            await chat.open_conversation(peer)
        await ann.send_message("hello Bob")

    asyncio.run(scenario())
    assert [m.content for m in ann.messages()] == ["hello Bob"]
    assert [m.content for m in bob.messages()] == ["hello Bob"]
    assert eve.messages() == []


def test_history_includes_messages_sent_before_joining(server_side):
    _, broadcaster, _ = server_side
    broadcaster.append(2, 1, "sent earlier")
    ann, _, _ = _session(server_side, 1, "Ann")

    async def scenario():
        await ann.start()
        await ann.open_conversation(2)

    asyncio.run(scenario())
    assert [m.content for m in ann.messages()] == ["sent earlier"]


def test_typing_indicator_follows_client_inactivity(server_side):
    ann, _, ann_clock = _session(server_side, 1, "Ann")
    bob, _, _ = _session(server_side, 2, "Bob")

    async def scenario():
        await ann.start()
        await bob.start()
        await ann.open_conversation(2)
        await bob.open_conversation(1)
        await ann.set_typing(True)
        assert [u.display_name for u in bob.typing_indicator.users] == ["Ann"]
        assert not ann.typing_indicator.is_anyone_typing
        ann_clock.advance(2.0)
        await drain()

    asyncio.run(scenario())
    assert not bob.typing_indicator.is_anyone_typing


def test_server_expires_typing_when_client_vanishes(server_side):
    _, _, server_clock = server_side
    ann, ann_transport, _ = _session(server_side, 1, "Ann")
    bob, _, _ = _session(server_side, 2, "Bob")

    async def scenario():
        await ann.start()
        await bob.start()
        await ann.open_conversation(2)
        await bob.open_conversation(1)
        await ann.set_typing(True)
        # Ann's client goes silent without sending stop or disconnecting.
        ann_transport.connected = False
        server_clock.advance(5.0)
        await drain()

    asyncio.run(scenario())
    assert not bob.typing_indicator.is_anyone_typing


def test_reconnect_resumes_room_membership(server_side):
    server, _, _ = server_side
    ann, ann_transport, _ = _session(server_side, 1, "Ann")
    bob, _, _ = _session(server_side, 2, "Bob")

    async def scenario():
        await ann.start()
        await bob.start()
        await ann.open_conversation(2)
        await bob.open_conversation(1)
        await ann_transport.drop()
        await bob.send_message("are you there?")
        await ann_transport.connect("http://chat.test")
        await bob.send_message("welcome back")

    asyncio.run(scenario())
    room = room_for_conversation(1, 2)
    assert ann_transport.sid in server.rooms[room]
    joins = [e for e in ann_transport.emitted if e[0] == protocol.JOIN]
    assert len(joins) == 2
    assert [m.content for m in ann.messages()] == ["welcome back"]
    assert [m.content for m in bob.messages()] == ["are you there?", "welcome back"]
