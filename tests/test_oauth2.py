"""Tests for the Intuit OAuth2 client and the auth-state registry."""

from __future__ import annotations

import base64
import json
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from quickbridge.auth.oauth2 import (
    INTUIT_TOKEN_URL,
    SCOPE_ACCOUNTING,
    ApiResponse,
    AuthStateRegistry,
    IntuitOAuthClient,
)
from quickbridge.auth.tokens import TokenSet
from quickbridge.errors import AuthExchangeError, RefreshError, VendorUnavailableError


def _make_client(handler) -> IntuitOAuthClient:  # noqa: ANN001
    return IntuitOAuthClient(
        client_id="test_client",
        client_secret="test_secret",
        redirect_uri="https://myapp.com/callback",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


# ---------------------------------------------------------------------------
# AuthStateRegistry tests
# ---------------------------------------------------------------------------


class TestAuthStateRegistry:
    def test_issue_returns_unique_values(self) -> None:
        states = AuthStateRegistry()
        assert states.issue() != states.issue()
        assert len(states) == 2

    def test_consume_once(self) -> None:
        states = AuthStateRegistry()
        state = states.issue()
        assert states.consume(state) is True
        assert states.consume(state) is False

    def test_unknown_and_missing_state_rejected(self) -> None:
        states = AuthStateRegistry()
        states.issue()
        assert states.consume("secureRandomState123") is False
        assert states.consume(None) is False
        assert states.consume("") is False

    def test_expired_state_rejected(self) -> None:
        states = AuthStateRegistry(ttl_seconds=60)
        with patch("quickbridge.auth.oauth2.time.monotonic", return_value=1000.0):
            state = states.issue()
        with patch("quickbridge.auth.oauth2.time.monotonic", return_value=1061.0):
            assert states.consume(state) is False

    def test_issue_prunes_expired(self) -> None:
        states = AuthStateRegistry(ttl_seconds=60)
        with patch("quickbridge.auth.oauth2.time.monotonic", return_value=1000.0):
            states.issue()
        with patch("quickbridge.auth.oauth2.time.monotonic", return_value=2000.0):
            states.issue()
        assert len(states) == 1


# ---------------------------------------------------------------------------
# IntuitOAuthClient tests
# ---------------------------------------------------------------------------


class TestAuthorizeUrl:
    def test_build_authorize_url(self) -> None:
        client = IntuitOAuthClient("test_client", "test_secret", "https://myapp.com/callback")
        url = client.build_authorize_url([SCOPE_ACCOUNTING], "abc123")

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert url.startswith("https://appcenter.intuit.com/connect/oauth2?")
        assert params["client_id"] == ["test_client"]
        assert params["redirect_uri"] == ["https://myapp.com/callback"]
        assert params["scope"] == [SCOPE_ACCOUNTING]
        assert params["state"] == ["abc123"]
        assert params["response_type"] == ["code"]

    def test_multiple_scopes_space_separated(self) -> None:
        client = IntuitOAuthClient("id", "secret", "https://myapp.com/callback")
        url = client.build_authorize_url([SCOPE_ACCOUNTING, "openid"], "s")
        assert parse_qs(urlparse(url).query)["scope"] == [f"{SCOPE_ACCOUNTING} openid"]


class TestExchangeCode:
    @pytest.mark.asyncio
    async def test_exchange_code(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "access_token": "code_access",
                "refresh_token": "code_refresh",
                "expires_in": 3600,
                "x_refresh_token_expires_in": 8726400,
            })

        client = _make_client(handler)
        token_set = await client.exchange_code_for_tokens(
            "https://myapp.com/callback?code=auth_code_123&realmId=4620816365&state=xyz"
        )

        assert token_set == TokenSet("code_access", "code_refresh", "4620816365")

        request = seen[0]
        assert str(request.url) == INTUIT_TOKEN_URL
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth_code_123"]
        assert form["redirect_uri"] == ["https://myapp.com/callback"]
        expected = base64.b64encode(b"test_client:test_secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_rejected_code_raises(self) -> None:
        client = _make_client(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(AuthExchangeError, match="invalid_grant"):
            await client.exchange_code_for_tokens("https://myapp.com/callback?code=used&realmId=1")

    @pytest.mark.asyncio
    async def test_missing_code_raises_without_network(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("token endpoint must not be called")

        client = _make_client(handler)
        with pytest.raises(AuthExchangeError, match="authorization code"):
            await client.exchange_code_for_tokens("https://myapp.com/callback?realmId=1")

    @pytest.mark.asyncio
    async def test_denied_consent_raises(self) -> None:
        client = _make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(AuthExchangeError, match="access_denied"):
            await client.exchange_code_for_tokens("https://myapp.com/callback?error=access_denied")


    @pytest.mark.asyncio
    async def test_non_json_token_response_raises(self) -> None:
        client = _make_client(lambda r: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(AuthExchangeError, match="unreadable response \\(200\\)"):
            await client.exchange_code_for_tokens("https://myapp.com/callback?code=c&realmId=9")


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_preserves_realm(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "new_access", "refresh_token": "new_refresh"})

        client = _make_client(handler)
        refreshed = await client.refresh(TokenSet("access", "refresh", "123"))

        assert refreshed.realm_id == "123"
        assert refreshed.access_token == "new_access"
        assert refreshed.refresh_token == "new_refresh"

        form = parse_qs(seen[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["refresh"]

    @pytest.mark.asyncio
    async def test_refresh_keeps_old_refresh_token_when_not_rotated(self) -> None:
        client = _make_client(lambda r: httpx.Response(200, json={"access_token": "new_access"}))
        refreshed = await client.refresh(TokenSet("access", "refresh", "123"))
        assert refreshed.refresh_token == "refresh"

    @pytest.mark.asyncio
    async def test_revoked_refresh_token_raises(self) -> None:
        client = _make_client(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(RefreshError, match="invalid_grant"):
            await client.refresh(TokenSet("access", "dead", "123"))

    @pytest.mark.asyncio
    async def test_missing_refresh_token_raises(self) -> None:
        client = _make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(RefreshError):
            await client.refresh(TokenSet("access", "", "123"))


    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json=["access_token"]),
    ])
    async def test_unreadable_refresh_response_raises(self, response: httpx.Response) -> None:
        client = _make_client(lambda r: response)
        with pytest.raises(RefreshError, match="unreadable response"):
            await client.refresh(TokenSet("access", "refresh", "123"))


class TestCallApi:
    @pytest.mark.asyncio
    async def test_bearer_header_and_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"CompanyInfo": {"CompanyName": "Test Corp"}})

        client = _make_client(handler)
        resp = await client.call_api(TokenSet("a1", "r1", "999"), "https://api.example.com/companyinfo/999")

        assert resp == ApiResponse(200, {"CompanyInfo": {"CompanyName": "Test Corp"}})
        assert resp.ok
        assert seen[0].headers["Authorization"] == "Bearer a1"
        assert seen[0].headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_401_returned_not_raised(self) -> None:
        client = _make_client(lambda r: httpx.Response(401, text="Unauthorized"))
        resp = await client.call_api(TokenSet("a1", "r1", "999"), "https://api.example.com/x")
        assert resp.status_code == 401
        assert resp.body == "Unauthorized"
        assert not resp.ok

    @pytest.mark.asyncio
    async def test_timeout_raises_vendor_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _make_client(handler)
        with pytest.raises(VendorUnavailableError, match="timed out"):
            await client.call_api(TokenSet("a1", "r1", "999"), "https://api.example.com/x")

    @pytest.mark.asyncio
    async def test_connect_error_raises_vendor_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _make_client(handler)
        with pytest.raises(VendorUnavailableError, match="ConnectError"):
            await client.call_api(TokenSet("a1", "r1", "999"), "https://api.example.com/x")


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_sends_refresh_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = _make_client(handler)
        assert await client.revoke(TokenSet("a1", "r1", "999")) is True
        assert json.loads(seen[0].content) == {"token": "r1"}

    @pytest.mark.asyncio
    async def test_revoke_failure_is_swallowed(self) -> None:
        client = _make_client(lambda r: httpx.Response(400))
        assert await client.revoke(TokenSet("a1", "r1", "999")) is False

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client = _make_client(lambda r: httpx.Response(200))
        http = await client._get_client()
        await client.close()
        assert http.is_closed
