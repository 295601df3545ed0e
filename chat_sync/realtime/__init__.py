"""Realtime infrastructure (Socket.IO, typing state).

This package holds the Socket.IO server, its event handlers and the
room-scoped typing state machine, plus the event names the client shares.
"""
