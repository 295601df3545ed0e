import pytest
from django.apps import apps
from rest_framework.test import APIClient

from chat_sync.conversations.services import MessageBroadcaster
from chat_sync.conversations.store import ConversationStore


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def delivered() -> list:
    return []


@pytest.fixture
def broadcaster(monkeypatch, store, delivered) -> MessageBroadcaster:
    """Fresh broadcaster installed on the realtime app for the test's duration."""

    async def deliver(message):
        delivered.append(message)

    instance = MessageBroadcaster(store, deliver=deliver)
    monkeypatch.setattr(apps.get_app_config("realtime"), "broadcaster", instance)
    monkeypatch.setattr(apps.get_app_config("conversations"), "store", store)
    return instance


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()
