"""Asyncio chat client: one shared connection, local cache and display helpers."""

from chat_sync.client.config import ChatClientConfig
from chat_sync.client.connection import ConnectionRegistry
from chat_sync.client.formatting import format_timestamp
from chat_sync.client.grouping import MessageGroup
from chat_sync.client.grouping import group_messages
from chat_sync.client.session import ChatSession

__all__ = [
    "ChatClientConfig",
    "ChatSession",
    "ConnectionRegistry",
    "MessageGroup",
    "format_timestamp",
    "group_messages",
]
