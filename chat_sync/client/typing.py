"""Client-side typing: outbound throttling and the inbound indicator.

Outbound, ``TypingCoordinator`` turns raw ``set_typing(bool)`` input into
start/stop notices. Starts are throttled (at most one per ``throttle``
seconds) to keep keystroke bursts cheap; stops are never throttled because a
stuck indicator is worse than a chatty one. A local inactivity timer sends the
stop if input simply ceases.

Inbound, ``TypingIndicator`` tracks which peers are typing in the active
conversation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any

from chat_sync.conversations.keys import conversation_key

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Callable
    from collections.abc import Coroutine

    from chat_sync.client.connection import ConnectionRegistry

    Scheduler = Callable[[float, Callable[[], None]], Any]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypingTarget:
    user_id: int
    display_name: str
    recipient_id: int


class TypingCoordinator:
    def __init__(
        self,
        connection: ConnectionRegistry,
        *,
        throttle: float = 0.5,
        inactivity: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        schedule: Scheduler | None = None,
    ):
        self._connection = connection
        self.throttle = throttle
        self.inactivity = inactivity
        self._clock = clock
        self._schedule = schedule
        self._target: TypingTarget | None = None
        self._last_start: float | None = None
        self._timer: Any = None
        self._timer_token: object | None = None
        self._typing = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_typing(self) -> bool:
        return self._typing

    @property
    def target(self) -> TypingTarget | None:
        return self._target

    def set_target(self, target: TypingTarget | None) -> None:
        """Point the coordinator at another conversation.

        Timing state never carries across targets: the pending inactivity
        timer is dropped and the throttle window starts fresh.
        """

        if target == self._target:
            return
        self._cancel_timer()
        self._last_start = None
        self._typing = False
        self._target = target

    async def set_typing(self, is_typing: bool) -> None:
        target = self._target
        if target is None:
            return

        if not is_typing:
            self._cancel_timer()
            self._typing = False
            await self._connection.stop_typing(target.user_id, target.recipient_id)
            return

        now = self._clock()
        self._typing = True
        self._arm_timer(target)
        if self._last_start is None or now - self._last_start > self.throttle:
            self._last_start = now
            await self._connection.start_typing(
                target.user_id, target.recipient_id, target.display_name
            )

    async def close(self) -> None:
        target = self._target
        was_typing = self._typing
        self._cancel_timer()
        self._typing = False
        self._target = None
        if was_typing and target is not None:
            await self._connection.stop_typing(target.user_id, target.recipient_id)

    def _call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        if self._schedule is not None:
            return self._schedule(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _arm_timer(self, target: TypingTarget) -> None:
        self._cancel_timer()
        token = object()
        self._timer_token = token
        self._timer = self._call_later(
            self.inactivity,
            lambda: self._spawn(self._on_inactive(token, target)),
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_token = None

    async def _on_inactive(self, token: object, target: TypingTarget) -> None:
        # Re-armed, cancelled or retargeted after this timer fired.
        if token is not self._timer_token or target != self._target:
            logger.debug("Discarding stale typing timer for %s", target)
            return
        self._timer = None
        self._timer_token = None
        self._typing = False
        try:
            await self._connection.stop_typing(target.user_id, target.recipient_id)
        except Exception:
            logger.exception("Failed to send typing stop")


@dataclass(frozen=True)
class TypingUser:
    user_id: int
    display_name: str


class TypingIndicator:
    """Peers currently typing in the active conversation."""

    def __init__(self, current_user_id: int):
        self.current_user_id = current_user_id
        self._conversation: str | None = None
        self._users: dict[int, str] = {}

    def set_conversation(self, recipient_id: int | None) -> None:
        self._users.clear()
        self._conversation = (
            conversation_key(self.current_user_id, recipient_id)
            if recipient_id is not None
            else None
        )

    def clear(self) -> None:
        self._users.clear()

    def handle_started(self, payload: dict[str, Any]) -> None:
        user_id = int(payload.get("userId", 0))
        if user_id == self.current_user_id or self._conversation is None:
            return
        recipient_id = payload.get("recipientId")
        if recipient_id is not None and (
            conversation_key(user_id, int(recipient_id)) != self._conversation
        ):
            return
        # Insertion order is kept on refresh; only the name is updated.
        self._users[user_id] = str(payload.get("displayName") or "")

    def handle_stopped(self, payload: dict[str, Any]) -> None:
        user_id = int(payload.get("userId", 0))
        if user_id != self.current_user_id:
            self._users.pop(user_id, None)

    @property
    def users(self) -> list[TypingUser]:
        return [TypingUser(uid, name) for uid, name in self._users.items()]

    @property
    def is_anyone_typing(self) -> bool:
        return bool(self._users)
