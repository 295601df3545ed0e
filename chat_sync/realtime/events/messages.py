from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from chat_sync.conversations.api.serializers import MessageSerializer
from chat_sync.conversations.keys import room_for_conversation
from chat_sync.realtime.protocol import MESSAGE_CREATED
from chat_sync.realtime.socketio import emit_to_room

if TYPE_CHECKING:  # import for type checking only
    from chat_sync.conversations.models import Message


def build_message_payload(message: Message) -> dict[str, Any]:
    return dict(MessageSerializer(message).data)


async def publish_message_created(message: Message) -> None:
    """Deliver a new message to everyone joined to its conversation room.

    The sender's own sockets are in the room too and receive it like anyone
    else; members not joined pick it up from history instead.
    """

    room = room_for_conversation(message.sender_id, message.recipient_id)
    await emit_to_room(MESSAGE_CREATED, build_message_payload(message), room=room)
