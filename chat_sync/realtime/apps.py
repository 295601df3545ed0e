from django.apps import AppConfig
from django.conf import settings
from django.utils.translation import gettext_lazy as _


class RealtimeConfig(AppConfig):
    name = "chat_sync.realtime"
    label = "realtime"
    verbose_name = _("Realtime")

    def ready(self):
        # Wired here rather than at import time so the conversation store
        # (owned by the conversations app) already exists.
        from chat_sync.conversations.services import build_broadcaster  # noqa: PLC0415
        from chat_sync.realtime.events.messages import publish_message_created  # noqa: PLC0415
        from chat_sync.realtime.socketio import ChatEventHandlers  # noqa: PLC0415
        from chat_sync.realtime.socketio import emit_to_room  # noqa: PLC0415
        from chat_sync.realtime.socketio import sio  # noqa: PLC0415
        from chat_sync.realtime.typing import TypingCoordinator  # noqa: PLC0415

        self.broadcaster = build_broadcaster(deliver=publish_message_created)
        self.typing = TypingCoordinator(
            emit=emit_to_room,
            timeout=settings.CHAT_TYPING_TIMEOUT,
        )
        self.handlers = ChatEventHandlers(sio, self.broadcaster, self.typing)
        self.handlers.register()
