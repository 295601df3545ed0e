from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from datetime import timedelta
from datetime import timezone as dt_timezone
from typing import TYPE_CHECKING

from django.apps import apps
from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from chat_sync.conversations.keys import conversation_key
from chat_sync.conversations.models import SYSTEM_SENDER_ID
from chat_sync.conversations.models import Message
from chat_sync.conversations.store import SendLocks

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Awaitable
    from collections.abc import Callable

    from chat_sync.conversations.store import ConversationStore

logger = logging.getLogger(__name__)

MESSAGE_ID_PREFIX = "msg"
MESSAGE_ID_RANDOM_LENGTH = 9
_ID_ALPHABET = string.ascii_lowercase + string.digits

MATCH_GREETING = "You matched ❤️"
MATCH_GREETING_AT = datetime(2020, 1, 7, 20, 18, tzinfo=dt_timezone.utc)


def generate_message_id(now: datetime | None = None) -> str:
    """Return ``msg_<epoch ms>_<9 random chars>``.

    The random part comes from ``secrets`` so two sends in the same
    millisecond still get distinct ids without any shared counter.
    """

    moment = now or timezone.now()
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(
        secrets.choice(_ID_ALPHABET) for _ in range(MESSAGE_ID_RANDOM_LENGTH)
    )
    return f"{MESSAGE_ID_PREFIX}_{millis:013d}_{suffix}"


def build_seed_messages(
    user_id_1: int,
    user_id_2: int,
    now: datetime | None = None,
) -> list[Message]:
    """Demo content for a brand new match: system greeting plus a short chat."""

    moment = now or timezone.now()
    script = [
        (user_id_2, user_id_1, "Hey! Did you also go to Oxford?", timedelta(hours=6)),
        (
            user_id_1,
            user_id_2,
            "Yes \U0001f60e Are you going to the food festival on Sunday?",
            timedelta(hours=5),
        ),
        (
            user_id_2,
            user_id_1,
            "I am! \U0001f60a See you there for a coffee?",
            timedelta(seconds=10),
        ),
    ]
    messages = [
        Message(
            id=generate_message_id(moment),
            sender_id=SYSTEM_SENDER_ID,
            recipient_id=0,
            content=MATCH_GREETING,
            timestamp=MATCH_GREETING_AT,
        ),
    ]
    messages.extend(
        Message(
            id=generate_message_id(moment),
            sender_id=sender,
            recipient_id=recipient,
            content=content,
            timestamp=moment - ago,
        )
        for sender, recipient, content, ago in script
    )
    return messages


class MessageBroadcaster:
    """Owns message creation for every conversation and fans new ones out.

    ``send`` holds a per-conversation thread lock across append + delivery,
    so members of one room observe messages in append order while sends to
    different conversations proceed independently. HTTP sends reach this
    from worker threads, each on its own loop via ``async_to_sync``, so the
    lock must not belong to any one event loop.
    """

    def __init__(
        self,
        store: ConversationStore,
        deliver: Callable[[Message], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] = timezone.now,
        *,
        seed_conversations: bool = False,
    ):
        self.store = store
        self._deliver = deliver
        self._clock = clock
        self._seed_conversations = seed_conversations
        self._send_locks = SendLocks()

    def append(self, sender_id: int, recipient_id: int, content: str) -> Message:
        if not isinstance(content, str) or not content.strip():
            msg = "Message content must not be empty."
            raise serializers.ValidationError({"content": [msg]})

        key = conversation_key(sender_id, recipient_id)

        def build(last: Message | None) -> Message:
            created_at = self._clock()
            # Keep timestamps non-decreasing within one conversation even if
            # the wall clock steps backwards.
            if last is not None and created_at < last.timestamp:
                created_at = last.timestamp
            return Message(
                id=generate_message_id(created_at),
                sender_id=int(sender_id),
                recipient_id=int(recipient_id),
                content=content,
                timestamp=created_at,
            )

        return self.store.append(key, build)

    async def send(self, sender_id: int, recipient_id: int, content: str) -> Message:
        key = conversation_key(sender_id, recipient_id)
        async with self._send_locks.hold(key):
            message = self.append(sender_id, recipient_id, content)
            logger.info("Message %s created in conversation %s", message.id, key)
            if self._deliver is not None:
                try:
                    await self._deliver(message)
                except Exception:
                    # The message is stored; members can still fetch it.
                    logger.exception("Delivery failed for message %s", message.id)
        return message

    def history(self, user_id_1: int, user_id_2: int) -> list[Message]:
        key = conversation_key(user_id_1, user_id_2)
        if self._seed_conversations:
            self.store.seed_if_empty(
                key,
                lambda: build_seed_messages(user_id_1, user_id_2, self._clock()),
            )
        return self.store.history(key)


def get_store() -> ConversationStore:
    return apps.get_app_config("conversations").store


def get_broadcaster() -> MessageBroadcaster:
    return apps.get_app_config("realtime").broadcaster


def build_broadcaster(
    deliver: Callable[[Message], Awaitable[None]] | None = None,
) -> MessageBroadcaster:
    return MessageBroadcaster(
        get_store(),
        deliver=deliver,
        seed_conversations=getattr(settings, "CHAT_SEED_CONVERSATIONS", False),
    )
