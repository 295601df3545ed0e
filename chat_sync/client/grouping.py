"""Display grouping for a conversation's messages.

Groups are derived on every read and never stored. Each message is compared
with the message immediately before it (not with the first message of its
group):

- more than an hour later: new group with a timestamp header
- same non-system sender within 20 seconds (inclusive): same group
- anything else: new group without a header

Because both rules are pairwise, a steady run of same-sender messages less
than 20 seconds apart stays one group however long it lasts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from chat_sync.conversations.models import Message

HEADER_GAP = timedelta(hours=1)
MERGE_WINDOW = timedelta(seconds=20)


@dataclass(frozen=True)
class MessageGroup:
    messages: tuple[Message, ...]
    show_timestamp: bool

    @property
    def first(self) -> Message:
        return self.messages[0]


def group_messages(messages: Iterable[Message]) -> list[MessageGroup]:
    # sorted() is stable, so equal timestamps keep their input order.
    ordered = sorted(messages, key=lambda m: m.timestamp)
    if not ordered:
        return []

    groups: list[MessageGroup] = []
    current: list[Message] = [ordered[0]]
    show_timestamp = True

    for previous, message in zip(ordered, ordered[1:]):
        elapsed = message.timestamp - previous.timestamp
        if elapsed > HEADER_GAP:
            groups.append(MessageGroup(tuple(current), show_timestamp))
            current, show_timestamp = [message], True
        elif (
            message.sender_id == previous.sender_id
            and elapsed <= MERGE_WINDOW
            and not message.is_system
        ):
            current.append(message)
        else:
            groups.append(MessageGroup(tuple(current), show_timestamp))
            current, show_timestamp = [message], False

    groups.append(MessageGroup(tuple(current), show_timestamp))
    return groups
