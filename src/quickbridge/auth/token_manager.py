"""
Token manager: refresh-on-401 around QuickBooks API calls.

Policy for one ``call_with_auto_refresh``:
- 2xx: return the body with the token set unchanged.
- 401: refresh once, retry once, never loop.
- any other status: raise ``ApiCallError``, no retry.
- connection failure or timeout: retry the same call once.

The manager hands refreshed token sets back to its caller and never writes
to a credential store itself.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from quickbridge.auth.oauth2 import ApiResponse, IntuitOAuthClient
from quickbridge.auth.tokens import TokenSet
from quickbridge.errors import ApiCallError, QuickBridgeError, VendorUnavailableError

logger = logging.getLogger("quickbridge.auth.token_manager")

_QBO_HOST = "quickbooks.api.intuit.com"


@dataclass(frozen=True)
class ApiResult:
    """Body of a successful call and the token set that produced it."""

    body: Any
    token_set: TokenSet
    refreshed: bool = False


class TokenManager:
    """Wraps ``IntuitOAuthClient.call_api`` with refresh and retry policy.

    Concurrent refreshes for the same realm share one request to the token
    endpoint, so two requests that both hit a 401 do not burn the rotating
    refresh token twice.
    """

    def __init__(self, oauth: IntuitOAuthClient, *, sandbox: bool = True) -> None:
        self.oauth = oauth
        self.sandbox = sandbox
        self._refreshes: dict[str, asyncio.Task[TokenSet]] = {}

    def qbo_base_url(self, realm_id: str) -> str:
        """Company-scoped QuickBooks API base URL for the current environment."""
        subdomain = "sandbox-" if self.sandbox else ""
        return f"https://{subdomain}{_QBO_HOST}/v3/company/{quote(str(realm_id), safe='')}"

    async def call_with_auto_refresh(self, url: str, token_set: TokenSet) -> ApiResult:
        """GET ``url`` with ``token_set``, refreshing once on 401.

        Raises:
            ApiCallError: Non-2xx status (including a second 401 after refresh).
            RefreshError: The refresh itself was rejected; no retry happens.
            VendorUnavailableError: The vendor stayed unreachable.
        """
        resp = await self._call(token_set, url)
        if resp.ok:
            return ApiResult(body=resp.body, token_set=token_set)

        if resp.status_code != 401:
            raise ApiCallError(resp.status_code, resp.body)

        logger.info("Access token rejected for realm %s, refreshing", token_set.realm_id)
        new_token_set = await self.refresh(token_set)

        try:
            retry = await self._call(new_token_set, url)
        except QuickBridgeError as e:
            e.refreshed_token_set = new_token_set
            raise

        if not retry.ok:
            err = ApiCallError(retry.status_code, retry.body)
            err.refreshed_token_set = new_token_set
            raise err

        return ApiResult(body=retry.body, token_set=new_token_set, refreshed=True)

    async def refresh(self, token_set: TokenSet) -> TokenSet:
        """Refresh ``token_set``, joining an in-flight refresh for its realm."""
        realm_id = token_set.realm_id
        task = self._refreshes.get(realm_id)
        if task is None:
            task = asyncio.ensure_future(self.oauth.refresh(token_set))
            self._refreshes[realm_id] = task
            task.add_done_callback(lambda t, realm=realm_id: self._forget(realm, t))
        else:
            logger.debug("Joining in-flight refresh for realm %s", realm_id)
        return await asyncio.shield(task)

    def _forget(self, realm_id: str, task: asyncio.Task[TokenSet]) -> None:
        if self._refreshes.get(realm_id) is task:
            del self._refreshes[realm_id]

    async def _call(self, token_set: TokenSet, url: str) -> ApiResponse:
        try:
            return await self.oauth.call_api(token_set, url)
        except VendorUnavailableError as e:
            logger.warning("QuickBooks call failed (%s), retrying once", e)
            return await self.oauth.call_api(token_set, url)
