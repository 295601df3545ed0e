from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class ConversationsConfig(AppConfig):
    name = "chat_sync.conversations"
    label = "conversations"
    verbose_name = _("Conversations")

    def ready(self):
        from chat_sync.conversations.store import ConversationStore  # noqa: PLC0415

        # One store per process; the HTTP API and the Socket.IO handlers share it.
        self.store = ConversationStore()
