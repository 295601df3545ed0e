"""Room publishers for server-originated chat events.

Each module turns a domain object into its wire payload and hands it to
``emit_to_room``; connection handling stays in ``realtime.socketio``.
"""
