"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures (alice, bob, carol, outsider)
- Chat fixtures (single chat, group chat)
- A ConnectionRouter with a recording transport installed as the
  process-wide router
- API client helpers for authenticated requests

Usage:
    def test_example(group_chat, alice_client):
        response = alice_client.get(f'/api/v1/chat/chats/{group_chat.id}/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat import router as router_module
from chat.router import ConnectionRouter
from chat.tests.factories import ChatFactory, SingleChatFactory
from chat.tests.fakes import RecordingTransport


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(display_name="alice")


@pytest.fixture
def bob(db):
    return UserFactory(display_name="bob")


@pytest.fixture
def carol(db):
    return UserFactory(display_name="carol")


@pytest.fixture
def outsider(db):
    """A user who is in none of the fixture chats."""
    return UserFactory(display_name="outsider")


# =============================================================================
# Chat Fixtures
# =============================================================================


@pytest.fixture
def single_chat(alice, bob):
    """SINGLE chat between alice and bob."""
    return SingleChatFactory(user1=alice, user2=bob)


@pytest.fixture
def group_chat(alice, bob, carol):
    """GROUP chat with alice, bob and carol."""
    return ChatFactory(name="Project Team", members=[alice, bob, carol])


# =============================================================================
# Router Fixtures
# =============================================================================


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def router(monkeypatch, transport):
    """
    ConnectionRouter with a recording transport, installed as get_router().

    Services broadcast through get_router(), so events they emit land in
    transport.sent.
    """
    connection_router = ConnectionRouter(transport=transport)
    monkeypatch.setattr(router_module, "_default_router", connection_router)
    return connection_router


# =============================================================================
# API Client Fixtures
# =============================================================================


def _client_for(user) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)
