"""Symmetric addressing for two-party conversations.

Every component that needs to address a conversation (the server store, the
Socket.IO rooms, the client cache) goes through these helpers so both
participants always land on the same key regardless of argument order.
"""

from __future__ import annotations


def conversation_pair(user_id_1: int, user_id_2: int) -> tuple[int, int]:
    """Return the participants as ``(smaller, larger)``."""

    a = int(user_id_1)
    b = int(user_id_2)
    return (a, b) if a <= b else (b, a)


def conversation_key(user_id_1: int, user_id_2: int) -> str:
    smaller, larger = conversation_pair(user_id_1, user_id_2)
    return f"{smaller}_{larger}"


def room_for_conversation(user_id_1: int, user_id_2: int) -> str:
    return f"conversation_{conversation_key(user_id_1, user_id_2)}"
