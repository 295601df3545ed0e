"""Socket.IO event names shared by the server handlers and the client.

These are intentionally simple strings so they serialize neatly; payloads are
JSON objects with camelCase keys.
"""

# client -> server
IDENTIFY = "user:identify"
JOIN = "conversation:join"
LEAVE = "conversation:leave"
SEND = "message:send"
TYPING_START = "typing:start"
TYPING_STOP = "typing:stop"

# server -> client
IDENTIFIED = "user:identified"
USER_JOINED = "user:joined"
MESSAGE_CREATED = "message:new"
TYPING_STARTED = "typing:start"
TYPING_STOPPED = "typing:stop"
