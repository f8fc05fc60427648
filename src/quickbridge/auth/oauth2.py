"""
Intuit OAuth2 client: authorization URLs, code exchange, refresh, API calls.

Speaks the authorization-code + refresh-token dialect used by QuickBooks
Online. This module performs single requests only; retry and refresh policy
lives in ``quickbridge.auth.token_manager``.

Features:
- Per-login random ``state`` values, verified once on callback
- HTTP Basic client authentication on the token endpoint
- Bounded timeout on every outbound request
- Best-effort token revocation on disconnect
"""

from __future__ import annotations

import base64
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from quickbridge.auth.tokens import TokenSet
from quickbridge.errors import AuthExchangeError, RefreshError, VendorUnavailableError

logger = logging.getLogger("quickbridge.auth.oauth2")

INTUIT_AUTHORIZE_URL = "https://appcenter.intuit.com/connect/oauth2"
INTUIT_TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
INTUIT_REVOKE_URL = "https://developer.api.intuit.com/v2/oauth2/tokens/revoke"

SCOPE_ACCOUNTING = "com.intuit.quickbooks.accounting"

_DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ApiResponse:
    """Outcome of a single vendor API request."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_httpx(cls, resp: httpx.Response) -> ApiResponse:
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        return cls(status_code=resp.status_code, body=body)


# ---------------------------------------------------------------------------
# Anti-forgery state
# ---------------------------------------------------------------------------


class AuthStateRegistry:
    """Issues random ``state`` values and accepts each one back exactly once.

    Args:
        ttl_seconds: How long an issued state stays redeemable.
    """

    def __init__(self, ttl_seconds: float = 600) -> None:
        self.ttl_seconds = ttl_seconds
        self._issued: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._issued)

    def issue(self) -> str:
        self._prune()
        state = secrets.token_urlsafe(32)
        self._issued[state] = time.monotonic()
        return state

    def consume(self, state: str | None) -> bool:
        """Redeem ``state``. False if unknown, expired, or already used."""
        if not state:
            return False
        issued_at = self._issued.pop(state, None)
        if issued_at is None:
            return False
        return time.monotonic() - issued_at <= self.ttl_seconds

    def _prune(self) -> None:
        cutoff = time.monotonic() - self.ttl_seconds
        for state in [s for s, t in self._issued.items() if t < cutoff]:
            del self._issued[state]


# ---------------------------------------------------------------------------
# OAuth client
# ---------------------------------------------------------------------------


class IntuitOAuthClient:
    """Thin async client for the Intuit OAuth2 and QuickBooks endpoints.

    Usage::

        client = IntuitOAuthClient(
            client_id="...",
            client_secret="...",
            redirect_uri="http://localhost:5000/callback",
        )
        url = client.build_authorize_url([SCOPE_ACCOUNTING], state)
        # ... browser comes back to the redirect URI ...
        tokens = await client.exchange_code_for_tokens(str(request.url))
        resp = await client.call_api(tokens, "https://.../companyinfo/123")
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        authorize_url: str = INTUIT_AUTHORIZE_URL,
        token_url: str = INTUIT_TOKEN_URL,
        revoke_url: str = INTUIT_REVOKE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.revoke_url = revoke_url
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def _basic_auth_header(self) -> str:
        credentials = f"{self.client_id}:{self.client_secret}"
        return "Basic " + base64.b64encode(credentials.encode()).decode()

    async def _post_token_endpoint(self, payload: dict[str, str]) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.post(
                self.token_url,
                data=payload,
                headers={
                    "Authorization": self._basic_auth_header(),
                    "Accept": "application/json",
                },
            )
        except httpx.TransportError as e:
            raise VendorUnavailableError(
                f"Intuit token endpoint unreachable: {type(e).__name__}"
            ) from e

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def build_authorize_url(self, scopes: list[str], state: str) -> str:
        """Build the URL the browser is sent to for consent. No network call."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": " ".join(scopes),
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, callback_url: str) -> TokenSet:
        """Run the authorization-code grant for the code in ``callback_url``.

        Raises:
            AuthExchangeError: The callback carries no code, reports an error,
                or the vendor rejects the code.
        """
        params = parse_qs(urlparse(callback_url).query)
        if "error" in params:
            raise AuthExchangeError(f"Authorization denied: {params['error'][0]}")

        code = params.get("code", [""])[0]
        realm_id = params.get("realmId", [""])[0]
        if not code:
            raise AuthExchangeError("Callback did not include an authorization code")
        if not realm_id:
            raise AuthExchangeError("Callback did not include a realmId")

        resp = await self._post_token_endpoint({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        })
        if resp.status_code != 200:
            raise AuthExchangeError(
                f"Authorization code rejected ({resp.status_code}): {_oauth_error(resp)}"
            )

        data = _token_payload(resp)
        if data is None:
            raise AuthExchangeError(
                f"Token endpoint returned an unreadable response ({resp.status_code})"
            )
        token_set = TokenSet(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token", ""),
            realm_id=realm_id,
        )
        if not token_set.is_valid:
            raise AuthExchangeError("Token response was missing access or refresh token")

        logger.info("Exchanged authorization code for realm %s", realm_id)
        return token_set

    # ------------------------------------------------------------------
    # Refresh / revoke
    # ------------------------------------------------------------------

    async def refresh(self, token_set: TokenSet) -> TokenSet:
        """Run the refresh-token grant. The realm is carried over unchanged.

        Raises:
            RefreshError: The refresh token is missing, invalid, or revoked.
        """
        if not token_set.refresh_token:
            raise RefreshError("No refresh token available; reconnect to QuickBooks")

        logger.debug("Refreshing access token for realm %s", token_set.realm_id)
        resp = await self._post_token_endpoint({
            "grant_type": "refresh_token",
            "refresh_token": token_set.refresh_token,
        })
        if resp.status_code != 200:
            raise RefreshError(
                f"Refresh token rejected ({resp.status_code}): {_oauth_error(resp)}"
            )

        data = _token_payload(resp)
        if data is None:
            raise RefreshError(
                f"Token endpoint returned an unreadable response ({resp.status_code})"
            )
        access_token = data.get("access_token", "")
        if not access_token:
            raise RefreshError("Refresh response did not include an access token")

        # Intuit rotates refresh tokens, but keep the old one if none came back
        refreshed = token_set.with_tokens(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or token_set.refresh_token,
        )
        logger.info("Refreshed access token for realm %s", token_set.realm_id)
        return refreshed

    async def revoke(self, token_set: TokenSet) -> bool:
        """Revoke the refresh token. Failures are logged, not raised."""
        client = await self._get_client()
        try:
            resp = await client.post(
                self.revoke_url,
                json={"token": token_set.refresh_token or token_set.access_token},
                headers={
                    "Authorization": self._basic_auth_header(),
                    "Accept": "application/json",
                },
            )
        except httpx.TransportError as e:
            logger.warning("Token revocation failed: %s", type(e).__name__)
            return False
        if resp.status_code != 200:
            logger.warning("Token revocation returned %d", resp.status_code)
            return False
        logger.info("Revoked tokens for realm %s", token_set.realm_id)
        return True

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def call_api(self, token_set: TokenSet, url: str) -> ApiResponse:
        """Authenticated GET against ``url``. Does not retry or refresh.

        Raises:
            VendorUnavailableError: Connection failure or timeout.
        """
        client = await self._get_client()
        headers = {
            "Authorization": f"Bearer {token_set.access_token}",
            "Accept": "application/json",
        }
        try:
            resp = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise VendorUnavailableError("QuickBooks API request timed out") from e
        except httpx.TransportError as e:
            raise VendorUnavailableError(
                f"QuickBooks API unreachable: {type(e).__name__}"
            ) from e
        return ApiResponse.from_httpx(resp)


def _token_payload(resp: httpx.Response) -> dict[str, Any] | None:
    """JSON object from a token endpoint response, or None if it is not one."""
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _oauth_error(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or "no details"
    if isinstance(data, dict):
        return str(data.get("error_description") or data.get("error") or "no details")
    return "no details"
