"""Shared fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from quickbridge.auth.oauth2 import IntuitOAuthClient
from quickbridge.auth.tokens import InMemoryCredentialStore, TokenSet


@pytest.fixture
def token_set() -> TokenSet:
    return TokenSet(access_token="a1", refresh_token="r1", realm_id="999")


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def oauth() -> IntuitOAuthClient:
    """Real client for URL building; every network method replaced."""
    client = IntuitOAuthClient(
        client_id="test_client",
        client_secret="test_secret",
        redirect_uri="http://localhost:5000/callback",
    )
    client.exchange_code_for_tokens = AsyncMock()  # type: ignore[method-assign]
    client.refresh = AsyncMock()  # type: ignore[method-assign]
    client.call_api = AsyncMock()  # type: ignore[method-assign]
    client.revoke = AsyncMock(return_value=True)  # type: ignore[method-assign]
    return client
