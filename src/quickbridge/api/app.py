"""
FastAPI application factory.

Builds the collaborators (credential store, OAuth client, token manager,
connectors) from configuration, keeps them on ``app.state``, and mounts the
route modules. Any collaborator can be passed in instead, which is how the
tests run the app without touching the network.

Run with uvicorn::

    uvicorn quickbridge.api.app:create_app --factory --port 5000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quickbridge import __version__
from quickbridge.api.routes import app_config, auth, quickbooks, shopify
from quickbridge.auth.oauth2 import AuthStateRegistry, IntuitOAuthClient
from quickbridge.auth.token_manager import TokenManager
from quickbridge.auth.tokens import (
    CredentialStore,
    EncryptedFileCredentialStore,
    InMemoryCredentialStore,
)
from quickbridge.config import BridgeConfig
from quickbridge.connectors.base import BaseConnector
from quickbridge.connectors.quickbooks import QuickBooksConnector
from quickbridge.connectors.shopify import ShopifyConnector
from quickbridge.errors import NotAuthenticatedError

logger = logging.getLogger("quickbridge.api.app")

CONFIG_ENV_VAR = "QUICKBRIDGE_CONFIG"


def build_store(config: BridgeConfig) -> CredentialStore:
    """Encrypted file store when ``quickbooks.token_file`` is set, else in-memory."""
    qb = config.quickbooks
    if qb.token_file:
        return EncryptedFileCredentialStore(Path(qb.token_file), key=qb.token_encryption_key)
    return InMemoryCredentialStore()


def create_app(
    config: BridgeConfig | None = None,
    *,
    store: CredentialStore | None = None,
    oauth_client: IntuitOAuthClient | None = None,
    shopify_connector: ShopifyConnector | None = None,
) -> FastAPI:
    """Create the QuickBridge API application."""
    config = config or BridgeConfig.load(os.environ.get(CONFIG_ENV_VAR))
    qb = config.quickbooks

    store = store if store is not None else build_store(config)
    oauth_client = oauth_client or IntuitOAuthClient(
        client_id=qb.client_id,
        client_secret=qb.client_secret,
        redirect_uri=qb.redirect_uri,
        timeout=config.http_timeout,
    )
    token_manager = TokenManager(oauth_client, sandbox=qb.sandbox)
    quickbooks_connector = QuickBooksConnector(store, token_manager)
    shopify_connector = shopify_connector or ShopifyConnector(
        store=config.shopify.store,
        access_token=config.shopify.access_token,
        api_version=config.shopify.api_version,
        timeout=config.http_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "QuickBridge API v%s (QuickBooks %s, frontend %s)",
            __version__,
            qb.environment,
            config.server.frontend_url or "not configured",
        )
        if not qb.client_id:
            logger.warning("CLIENT_ID is not set; QuickBooks authorization will fail")
        yield
        connectors: list[BaseConnector] = [quickbooks_connector, shopify_connector]
        for connector in connectors:
            await connector.close()
            logger.debug("Closed %s connector", connector.name)

    app = FastAPI(title="QuickBridge API", version=__version__, lifespan=lifespan)

    app.state.config = config
    app.state.store = store
    app.state.oauth_client = oauth_client
    app.state.auth_states = AuthStateRegistry(ttl_seconds=qb.state_ttl_seconds)
    app.state.token_manager = token_manager
    app.state.quickbooks = quickbooks_connector
    app.state.shopify = shopify_connector

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.server.frontend_url] if config.server.frontend_url else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(app_config.router)
    app.include_router(auth.router)
    app.include_router(auth.callback_router)
    app.include_router(quickbooks.router)
    app.include_router(shopify.router)

    @app.get("/", include_in_schema=False)
    def root() -> PlainTextResponse:
        return PlainTextResponse(
            "Server is running and you do not have access to it", status_code=403
        )

    _install_error_handlers(app, production=config.server.production)
    return app


def _install_error_handlers(app: FastAPI, *, production: bool) -> None:
    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated(request: Request, exc: NotAuthenticatedError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": "Not authenticated", "message": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "404 Not Found",
                    "message": "The requested resource was not found on this server.",
                    "path": request.url.path,
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "500 Internal Server Error",
                "message": "Something went wrong" if production else str(exc),
            },
        )
