"""Authoritative typing state for conversation rooms.

State per (room, user) is either idle (no entry) or typing (an entry holding a
cancellable expiry timer). ``start`` (re)arms the timer for exactly
``timeout`` seconds, ``stop`` clears it, and expiry clears it on its own so an
indicator never outlives a client that vanished without saying stop.

All transitions for one room, including the broadcast they trigger, run under
that room's lock so peers observe start/stop notices in transition order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from chat_sync.realtime.protocol import TYPING_STARTED
from chat_sync.realtime.protocol import TYPING_STOPPED

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import AsyncIterator
    from collections.abc import Awaitable
    from collections.abc import Callable
    from collections.abc import Coroutine

    RoomEmitter = Callable[..., Awaitable[None]]
    Scheduler = Callable[[float, Callable[[], None]], Any]

logger = logging.getLogger(__name__)

DEFAULT_TYPING_TIMEOUT = 5.0


@dataclass(eq=False)
class _TypingEntry:
    recipient_id: int
    sid: str | None
    handle: Any = field(default=None)


class TypingCoordinator:
    def __init__(
        self,
        emit: RoomEmitter,
        timeout: float = DEFAULT_TYPING_TIMEOUT,
        schedule: Scheduler | None = None,
    ):
        self._emit = emit
        self.timeout = timeout
        self._schedule = schedule
        self._rooms: dict[str, dict[int, _TypingEntry]] = {}
        # room -> [lock, holders and waiters]; dropped once nobody uses it
        self._locks: dict[str, list] = {}
        self._tasks: set[asyncio.Task] = set()

    @contextlib.asynccontextmanager
    async def _room_lock(self, room: str) -> AsyncIterator[None]:
        entry = self._locks.setdefault(room, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if not entry[1]:
                del self._locks[room]

    def _call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        if self._schedule is not None:
            return self._schedule(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _pop(self, room: str, user_id: int) -> _TypingEntry | None:
        typers = self._rooms.get(room)
        if not typers:
            return None
        entry = typers.pop(user_id, None)
        if not typers:
            self._rooms.pop(room, None)
        if entry is not None and entry.handle is not None:
            entry.handle.cancel()
        return entry

    async def start(
        self,
        room: str,
        user_id: int,
        display_name: str,
        *,
        recipient_id: int = 0,
        sid: str | None = None,
    ) -> None:
        async with self._room_lock(room):
            self._pop(room, user_id)
            entry = _TypingEntry(recipient_id=recipient_id, sid=sid)
            entry.handle = self._call_later(
                self.timeout,
                lambda: self._spawn(self._expire(room, user_id, entry)),
            )
            self._rooms.setdefault(room, {})[user_id] = entry

            payload = {
                "userId": user_id,
                "recipientId": recipient_id,
                "displayName": display_name,
            }
            await self._emit(TYPING_STARTED, payload, room=room, skip_sid=sid)

    async def stop(
        self,
        room: str,
        user_id: int,
        *,
        recipient_id: int = 0,
        sid: str | None = None,
    ) -> None:
        # Stopping an idle user is still broadcast; peers may hold a stale
        # indicator from before a reconnect.
        async with self._room_lock(room):
            self._pop(room, user_id)
            payload = {"userId": user_id, "recipientId": recipient_id}
            await self._emit(TYPING_STOPPED, payload, room=room, skip_sid=sid)

    async def _expire(self, room: str, user_id: int, entry: _TypingEntry) -> None:
        try:
            async with self._room_lock(room):
                # A refresh or stop may have replaced this entry between the
                # timer firing and this task acquiring the lock.
                if self._rooms.get(room, {}).get(user_id) is not entry:
                    return
                self._pop(room, user_id)
                logger.debug("Typing expired for user %s in %s", user_id, room)
                payload = {"userId": user_id, "recipientId": entry.recipient_id}
                await self._emit(
                    TYPING_STOPPED, payload, room=room, skip_sid=entry.sid
                )
        except Exception:
            logger.exception("Typing expiry failed for user %s in %s", user_id, room)

    async def on_disconnect(self, user_id: int) -> list[str]:
        """Clear every typing entry held by ``user_id``; return the rooms touched."""

        cleared: list[str] = []
        for room in list(self._rooms):
            async with self._room_lock(room):
                entry = self._pop(room, user_id)
                if entry is None:
                    continue
                cleared.append(room)
                payload = {"userId": user_id, "recipientId": entry.recipient_id}
                await self._emit(
                    TYPING_STOPPED, payload, room=room, skip_sid=entry.sid
                )
        return cleared

    def is_typing(self, room: str, user_id: int) -> bool:
        return user_id in self._rooms.get(room, {})

    def typing_users(self, room: str) -> list[int]:
        return sorted(self._rooms.get(room, {}))
