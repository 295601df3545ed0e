"""Payload validation for inbound Socket.IO events."""

from __future__ import annotations

from rest_framework import serializers


class IdentifySerializer(serializers.Serializer):
    userId = serializers.IntegerField(source="user_id")  # noqa: N815


class ConversationPairSerializer(serializers.Serializer):
    """``{userId, recipientId}`` as sent with join/leave/typing:stop."""

    userId = serializers.IntegerField(source="user_id")  # noqa: N815
    recipientId = serializers.IntegerField(source="recipient_id")  # noqa: N815


class TypingStartSerializer(ConversationPairSerializer):
    displayName = serializers.CharField(  # noqa: N815
        source="display_name",
        required=False,
        allow_blank=True,
        default="",
        max_length=255,
    )
