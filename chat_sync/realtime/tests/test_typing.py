import asyncio

from chat_sync.realtime.protocol import TYPING_STARTED
from chat_sync.realtime.protocol import TYPING_STOPPED
from chat_sync.realtime.typing import TypingCoordinator
from tests.fakes import FakeScheduler
from tests.fakes import drain

ROOM = "conversation_1_2"


class Recorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, event, payload, room, skip_sid=None):
        self.calls.append((event, payload, room, skip_sid))

    def events(self):
        return [call[0] for call in self.calls]


def _coordinator():
    scheduler = FakeScheduler()
    recorder = Recorder()
    return TypingCoordinator(recorder, timeout=5.0, schedule=scheduler), recorder, scheduler


def test_start_broadcasts_to_others_in_room():
    coordinator, recorder, _ = _coordinator()
    asyncio.run(coordinator.start(ROOM, 1, "Ann", recipient_id=2, sid="s1"))
    assert recorder.calls == [
        (
            TYPING_STARTED,
            {"userId": 1, "recipientId": 2, "displayName": "Ann"},
            ROOM,
            "s1",
        )
    ]
    assert coordinator.is_typing(ROOM, 1)


def test_no_stop_before_timeout():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2, sid="s1")
        scheduler.advance(4.999)
        await drain()

    asyncio.run(scenario())
    assert recorder.events() == [TYPING_STARTED]
    assert coordinator.is_typing(ROOM, 1)


def test_exactly_one_stop_after_timeout():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2, sid="s1")
        scheduler.advance(5.0)
        await drain()
        scheduler.advance(30.0)
        await drain()

    asyncio.run(scenario())
    assert recorder.events() == [TYPING_STARTED, TYPING_STOPPED]
    assert recorder.calls[-1][1] == {"userId": 1, "recipientId": 2}
    assert not coordinator.is_typing(ROOM, 1)


def test_refresh_resets_the_timer():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2)
        scheduler.advance(3.0)
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2)
        scheduler.advance(3.0)
        await drain()
        assert coordinator.is_typing(ROOM, 1)
        scheduler.advance(2.0)
        await drain()

    asyncio.run(scenario())
    assert recorder.events() == [TYPING_STARTED, TYPING_STARTED, TYPING_STOPPED]
    assert len(scheduler.pending) == 0


def test_explicit_stop_cancels_expiry():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2)
        await coordinator.stop(ROOM, 1, recipient_id=2)
        scheduler.advance(10.0)
        await drain()

    asyncio.run(scenario())
    assert recorder.events() == [TYPING_STARTED, TYPING_STOPPED]


def test_stop_while_idle_is_still_broadcast():
    coordinator, recorder, _ = _coordinator()
    asyncio.run(coordinator.stop(ROOM, 1, recipient_id=2))
    assert recorder.events() == [TYPING_STOPPED]


def test_users_are_independent():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2)
        scheduler.advance(2.0)
        await coordinator.start(ROOM, 2, "Bob", recipient_id=1)
        scheduler.advance(3.0)
        await drain()

    asyncio.run(scenario())
    assert coordinator.typing_users(ROOM) == [2]


def test_disconnect_clears_every_room():
    coordinator, recorder, scheduler = _coordinator()

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2, sid="s1")
        await coordinator.start("conversation_1_3", 1, "Ann", recipient_id=3, sid="s1")
        rooms = await coordinator.on_disconnect(1)
        scheduler.advance(10.0)
        await drain()
        return rooms

    rooms = asyncio.run(scenario())
    assert sorted(rooms) == ["conversation_1_2", "conversation_1_3"]
    stops = [call for call in recorder.calls if call[0] == TYPING_STOPPED]
    assert sorted(call[1]["recipientId"] for call in stops) == [2, 3]
    assert coordinator.typing_users(ROOM) == []


def test_expiry_emit_failure_is_logged(caplog):
    scheduler = FakeScheduler()
    calls = []

    async def emit(event, payload, room, skip_sid=None):
        calls.append(event)
        if event == TYPING_STOPPED:
            msg = "emit failed"
            raise RuntimeError(msg)

    coordinator = TypingCoordinator(emit, timeout=5.0, schedule=scheduler)

    async def scenario():
        await coordinator.start(ROOM, 1, "Ann", recipient_id=2)
        scheduler.advance(5.0)
        await drain()

    asyncio.run(scenario())
    assert calls == [TYPING_STARTED, TYPING_STOPPED]
    assert "Typing expiry failed" in caplog.text
    assert not coordinator.is_typing(ROOM, 1)


def test_room_locks_are_released_once_rooms_go_quiet():
    coordinator, recorder, scheduler = _coordinator()
    rooms = [f"conversation_1_{n}" for n in range(2, 12)]

    async def scenario():
        await asyncio.gather(
            *(coordinator.start(room, 1, "Ann", recipient_id=2) for room in rooms),
            coordinator.stop(rooms[0], 1, recipient_id=2),
        )
        await coordinator.stop(rooms[1], 1, recipient_id=2)
        await coordinator.on_disconnect(1)
        await coordinator.start(ROOM, 3, "Cy", recipient_id=1)
        scheduler.advance(5.0)
        await drain()

    asyncio.run(scenario())
    assert not coordinator.is_typing(ROOM, 3)
    assert coordinator._locks == {}
