from __future__ import annotations

from rest_framework import serializers


class MessageSerializer(serializers.Serializer):
    """Read serializer for the wire shape of a message."""

    id = serializers.CharField(read_only=True)
    senderId = serializers.IntegerField(source="sender_id", read_only=True)  # noqa: N815
    recipientId = serializers.IntegerField(source="recipient_id", read_only=True)  # noqa: N815
    content = serializers.CharField(read_only=True)
    timestamp = serializers.DateTimeField(read_only=True)


class ConversationHistorySerializer(serializers.Serializer):
    messages = MessageSerializer(many=True, read_only=True)


class HistoryQuerySerializer(serializers.Serializer):
    userId = serializers.IntegerField(source="user_id")  # noqa: N815
    recipientId = serializers.IntegerField(source="recipient_id")  # noqa: N815


class SendMessageSerializer(serializers.Serializer):
    """Create serializer shared by ``POST /messages/`` and ``message:send``."""

    senderId = serializers.IntegerField(source="sender_id")  # noqa: N815
    recipientId = serializers.IntegerField(source="recipient_id")  # noqa: N815
    # Whitespace is kept as sent; blank-after-trim is rejected below.
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)

    def validate_content(self, value: str) -> str:
        if not value.strip():
            msg = "Message content must not be empty."
            raise serializers.ValidationError(msg)
        return value
