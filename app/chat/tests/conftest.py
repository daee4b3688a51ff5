"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures (alice, bob, carol, assistant account)
- RecordingEmitter: captures every outbound event instead of using a
  channel layer
- hub: a RealtimeHub around a RecordingEmitter, installed with set_hub()
- API client helpers for authenticated requests

Realtime tests run the store on a worker thread, so they need committed
data:

    pytestmark = [pytest.mark.django_db(transaction=True)]

    async def test_example(hub, alice, bob, emitter):
        await hub.connect(bob.id, "bob-1")
        await hub.router.send(alice.id, bob.id, "Hi")
        assert emitter.names_for("bob-1") == ["message_received"]
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.realtime.hub import RealtimeHub, set_hub


# =============================================================================
# Recording Emitter
# =============================================================================


class RecordingEmitter:
    """
    Emitter that records (handle, event, payload) instead of sending.

    Usage:
        emitter.names_for("bob-1")              # ["message_received", ...]
        emitter.payloads_for("bob-1", "history")
    """

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def emit(self, handle: str, event: str, payload: dict) -> None:
        self.sent.append((handle, event, payload))

    def names_for(self, handle: str) -> list[str]:
        return [event for sent_to, event, _ in self.sent if sent_to == handle]

    def payloads_for(self, handle: str, event: str) -> list[dict]:
        return [
            payload
            for sent_to, sent_event, payload in self.sent
            if sent_to == handle and sent_event == event
        ]

    def clear(self) -> None:
        self.sent.clear()


class StubResponder:
    """AssistantResponder stand-in returning a canned reply."""

    history_limit = 5

    def __init__(self, text: str = "Hello from Nova"):
        self.text = text
        self.calls: list[tuple[list, str, int]] = []

    async def reply(self, prior_messages, new_content: str, assistant_id) -> str:
        self.calls.append((list(prior_messages), new_content, assistant_id))
        return self.text


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(email="alice@example.com", profile__username="alice")


@pytest.fixture
def bob(db):
    return UserFactory(email="bob@example.com", profile__username="bob")


@pytest.fixture
def carol(db):
    return UserFactory(email="carol@example.com", profile__username="carol")


@pytest.fixture
def assistant_user(db):
    """The AI assistant account."""
    return UserFactory(
        email="nova@example.com",
        profile__username="nova",
        profile__is_assistant=True,
    )


# =============================================================================
# Realtime Fixtures
# =============================================================================


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def responder():
    return StubResponder()


@pytest.fixture
async def hub(emitter):
    """
    RealtimeHub with a recording emitter and short timers.

    Installed as the process hub for the duration of the test, so
    views and consumers use it too.
    """
    realtime_hub = RealtimeHub(
        emitter,
        store_timeout=5,
        typing_timeout=0.2,
        presence_grace=0,
        max_retries=2,
        retry_backoff=0,
    )
    previous = set_hub(realtime_hub)
    yield realtime_hub
    await realtime_hub.close()
    set_hub(previous)


@pytest.fixture
async def assistant_hub(emitter, responder):
    """Like hub, with a stub assistant responder."""
    realtime_hub = RealtimeHub(
        emitter,
        responder=responder,
        store_timeout=5,
        typing_timeout=0.2,
        presence_grace=0,
        max_retries=0,
        retry_backoff=0,
    )
    previous = set_hub(realtime_hub)
    yield realtime_hub
    await realtime_hub.close()
    set_hub(previous)


# =============================================================================
# API Client Fixtures
# =============================================================================


def client_for(user) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def alice_client(alice):
    return client_for(alice)


@pytest.fixture
def bob_client(bob):
    return client_for(bob)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def rest_hub(emitter):
    """
    Hub for synchronous (REST) tests.

    Views reach the hub through async_to_sync; no timers are started on
    these paths, so there is nothing to close.
    """
    realtime_hub = RealtimeHub(emitter, store_timeout=5, presence_grace=0)
    previous = set_hub(realtime_hub)
    yield realtime_hub
    set_hub(previous)
