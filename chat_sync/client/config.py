from __future__ import annotations

from dataclasses import dataclass

import environ


@dataclass
class ChatClientConfig:
    """Client-side timing and endpoint settings.

    ``typing_inactivity`` must stay below the server's typing timeout so the
    client normally says stop before the server's failsafe fires.
    """

    server_url: str = "http://localhost:8000"
    socketio_path: str = "socket.io"
    history_path: str = "/api/v1/messages/"
    typing_throttle: float = 0.5
    typing_inactivity: float = 2.0
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls, env: environ.Env | None = None) -> ChatClientConfig:
        if env is None:
            env = environ.Env()
        defaults = cls()
        return cls(
            server_url=env.str("CHAT_SERVER_URL", default=defaults.server_url),
            socketio_path=env.str("CHAT_SOCKETIO_PATH", default=defaults.socketio_path),
            history_path=env.str("CHAT_HISTORY_PATH", default=defaults.history_path),
            typing_throttle=env.float(
                "CHAT_TYPING_THROTTLE",
                default=defaults.typing_throttle,
            ),
            typing_inactivity=env.float(
                "CHAT_TYPING_INACTIVITY",
                default=defaults.typing_inactivity,
            ),
            request_timeout=env.float(
                "CHAT_REQUEST_TIMEOUT",
                default=defaults.request_timeout,
            ),
        )
