"""
Test configuration and fixtures for authentication tests.

This module provides:
- User fixtures with their auto-created profiles
- API client helpers for JWT-authenticated requests
- A process hub for the user directory, which reads live presence

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get('/api/v1/auth/profile/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.models import User, RESERVED_USERNAMES
from authentication.tests.factories import UserFactory
from chat.realtime.hub import RealtimeHub, set_hub
from chat.tests.conftest import RecordingEmitter


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """
    Create a basic user with auto-created profile.

    The password is "TestPass123!".
    """
    return UserFactory(email="alice@example.com", profile__username="alice")


@pytest.fixture
def other_user(db):
    """Create a second user for uniqueness checks."""
    return UserFactory(email="bob@example.com", profile__username="bob")


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        email="admin@example.com", password="AdminPass123!"
    )


@pytest.fixture
def profile(user):
    """Get the profile for the default user fixture."""
    return user.profile


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client for public endpoints."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """
    API client authenticated with JWT token for the default user fixture.

    Use this for tests that need a logged-in user.
    """
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def reserved_usernames():
    """All reserved usernames."""
    return list(RESERVED_USERNAMES)


@pytest.fixture
def invalid_usernames():
    """Usernames that fail the format check."""
    return ["ab", "a" * 31, "has space", "bad!char", "dot.name"]


# =============================================================================
# Realtime Fixtures
# =============================================================================


@pytest.fixture
def directory_hub():
    """
    Process hub with a recording emitter.

    The user directory reads live presence from the hub's registry;
    connect users with async_to_sync(directory_hub.connect).
    """
    realtime_hub = RealtimeHub(RecordingEmitter(), store_timeout=5, presence_grace=0)
    previous = set_hub(realtime_hub)
    yield realtime_hub
    set_hub(previous)
