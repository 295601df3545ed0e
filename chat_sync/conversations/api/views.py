"""Conversation history and send endpoints."""

from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from chat_sync.conversations.services import get_broadcaster

from .serializers import ConversationHistorySerializer
from .serializers import HistoryQuerySerializer
from .serializers import MessageSerializer
from .serializers import SendMessageSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        tags=["Messages"],
        parameters=[
            OpenApiParameter("userId", OpenApiTypes.INT, required=True),
            OpenApiParameter("recipientId", OpenApiTypes.INT, required=True),
        ],
        responses=ConversationHistorySerializer,
    ),
    create=extend_schema(
        tags=["Messages"],
        request=SendMessageSerializer,
        responses={201: MessageSerializer},
    ),
)
class MessageViewSet(GenericViewSet):
    """Conversation between two users.

    - list: ``?userId=&recipientId=`` returns ``{"messages": [...]}``; a pair
      that never exchanged messages yields an empty list
    - create: appends a message and fans it out to the conversation room
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    serializer_class = MessageSerializer
    pagination_class = None

    def list(self, request, *args, **kwargs):
        query = HistoryQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(
                {"error": "Invalid userId or recipientId"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = query.validated_data
        messages = get_broadcaster().history(data["user_id"], data["recipient_id"])
        return Response({"messages": MessageSerializer(messages, many=True).data})

    def create(self, request, *args, **kwargs):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        message = async_to_sync(get_broadcaster().send)(
            data["sender_id"],
            data["recipient_id"],
            data["content"],
        )
        return Response(
            MessageSerializer(message).data,
            status=status.HTTP_201_CREATED,
        )
