"""In-memory conversation log shared by the HTTP API and the socket handlers.

Sync Django views run in worker threads while Socket.IO handlers run on the
event loop, so the store guards itself with thread locks: one lock for the
key -> conversation map, and one lock per conversation so appends to
different conversations never wait on each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import AsyncIterator
    from collections.abc import Callable

    from chat_sync.conversations.models import Message

logger = logging.getLogger(__name__)


class _Conversation:
    __slots__ = ("lock", "messages")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.messages: list[Message] = []


class ConversationStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conversations: dict[str, _Conversation] = {}

    def _get_or_create(self, key: str) -> _Conversation:
        with self._lock:
            conversation = self._conversations.get(key)
            if conversation is None:
                conversation = _Conversation()
                self._conversations[key] = conversation
            return conversation

    def append(self, key: str, build: Callable[[Message | None], Message]) -> Message:
        """Atomically build and append a message to conversation ``key``.

        ``build`` receives the current last message (or None) and returns the
        new one, so identifier and timestamp assignment happen inside the
        conversation's critical section.
        """

        conversation = self._get_or_create(key)
        with conversation.lock:
            last = conversation.messages[-1] if conversation.messages else None
            message = build(last)
            conversation.messages.append(message)
        return message

    def history(self, key: str) -> list[Message]:
        """Return a copy of the conversation, creating it empty if absent."""

        conversation = self._get_or_create(key)
        with conversation.lock:
            return list(conversation.messages)

    def seed_if_empty(self, key: str, seed: Callable[[], list[Message]]) -> bool:
        conversation = self._get_or_create(key)
        with conversation.lock:
            if conversation.messages:
                return False
            conversation.messages.extend(seed())
        logger.debug("Seeded conversation %s", key)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)


class SendLocks:
    """Per-conversation thread locks that coroutines can wait on.

    A send holds its conversation's lock across append and delivery. Sends
    arrive from the Socket.IO loop and from HTTP worker threads, each of which
    runs its own loop under ``async_to_sync``, so an asyncio lock cannot be
    shared between them. Waiting happens on an executor thread and leaves the
    caller's loop free.

    An entry only exists while some send holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, list] = {}  # key -> [lock, users]

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if not entry[1]:
                del self._entries[key]

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            await _acquire(lock)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class _Handoff:
    """Blocking acquire on an executor thread that a cancelled waiter can abandon.

    Whichever side finishes second releases the lock, so an abandoned
    acquisition never leaves it held, even after the waiting loop has closed.
    """

    def __init__(self, lock: threading.Lock):
        self._lock = lock
        self._guard = threading.Lock()
        self._acquired = False
        self._abandoned = False

    def wait(self) -> None:
        self._lock.acquire()
        with self._guard:
            if self._abandoned:
                self._lock.release()
            else:
                self._acquired = True

    def abandon(self) -> None:
        with self._guard:
            self._abandoned = True
            if self._acquired:
                self._lock.release()


async def _acquire(lock: threading.Lock) -> None:
    if lock.acquire(blocking=False):
        return
    handoff = _Handoff(lock)
    waiter = asyncio.get_running_loop().run_in_executor(None, handoff.wait)
    try:
        await asyncio.shield(waiter)
    except asyncio.CancelledError:
        handoff.abandon()
        raise
