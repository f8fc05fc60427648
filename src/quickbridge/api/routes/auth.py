"""
QuickBooks connection routes: authorize URL, OAuth callback, status, disconnect.

All public. The callback answers with an HTML page rather than JSON because
its consumer is the browser coming back from Intuit.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from quickbridge.api.dependencies import (
    get_auth_states,
    get_config,
    get_oauth_client,
    get_store,
)
from quickbridge.api.pages import failure_page, frontend_redirect, success_page
from quickbridge.auth.oauth2 import AuthStateRegistry, IntuitOAuthClient
from quickbridge.auth.tokens import CredentialStore
from quickbridge.config import BridgeConfig
from quickbridge.errors import QuickBridgeError, StateMismatchError

logger = logging.getLogger("quickbridge.api.routes.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])
callback_router = APIRouter(tags=["auth"])


@router.get("/url")
def get_auth_url(
    config: BridgeConfig = Depends(get_config),
    oauth: IntuitOAuthClient = Depends(get_oauth_client),
    states: AuthStateRegistry = Depends(get_auth_states),
):
    """Authorization URL for the "Connect to QuickBooks" button."""
    try:
        auth_url = oauth.build_authorize_url(config.quickbooks.scopes, states.issue())
    except Exception:
        logger.exception("Error generating auth URL")
        return JSONResponse(status_code=500, content={"error": "Failed to generate auth URL"})
    return {"authUrl": auth_url}


@callback_router.get("/callback", response_class=HTMLResponse)
@callback_router.get("/api/callback", response_class=HTMLResponse)
async def handle_callback(
    request: Request,
    config: BridgeConfig = Depends(get_config),
    oauth: IntuitOAuthClient = Depends(get_oauth_client),
    states: AuthStateRegistry = Depends(get_auth_states),
    store: CredentialStore = Depends(get_store),
):
    """Intuit redirect target: verify state, exchange the code, store tokens."""
    frontend_url = config.server.frontend_url
    if not request.query_params.get("code"):
        logger.warning("OAuth callback without authorization code")
        return RedirectResponse(frontend_redirect(frontend_url, error="no_auth_code"))

    try:
        if not states.consume(request.query_params.get("state")):
            raise StateMismatchError("Unknown, expired, or reused OAuth state")
        token_set = await oauth.exchange_code_for_tokens(str(request.url))
    except QuickBridgeError as e:
        logger.error("OAuth callback failed: %s", e)
        return HTMLResponse(failure_page(frontend_url))

    store.set(token_set)
    logger.info("Connected to QuickBooks realm %s", token_set.realm_id)
    return HTMLResponse(success_page(frontend_url))


@router.get("/status")
def get_auth_status(store: CredentialStore = Depends(get_store)):
    connected = store.has()
    token_set = store.get()
    return {
        "connected": connected,
        "hasTokens": connected,
        "realmId": token_set.realm_id if connected and token_set else None,
    }


@router.post("/disconnect")
async def disconnect(
    store: CredentialStore = Depends(get_store),
    oauth: IntuitOAuthClient = Depends(get_oauth_client),
):
    """Revoke (best effort) and forget the stored tokens."""
    token_set = store.get()
    if token_set is not None and token_set.is_valid:
        await oauth.revoke(token_set)
    store.clear()
    logger.info("Disconnected from QuickBooks")
    return {"success": True, "message": "Disconnected from QuickBooks"}
