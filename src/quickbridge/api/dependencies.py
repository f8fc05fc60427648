"""
FastAPI dependencies: collaborator lookup and the QuickBooks auth gate.

Collaborators are built once by ``create_app`` and kept on ``app.state``;
tests replace them there or through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Request

from quickbridge.auth.oauth2 import AuthStateRegistry, IntuitOAuthClient
from quickbridge.auth.tokens import CredentialStore, TokenSet
from quickbridge.config import BridgeConfig
from quickbridge.connectors.quickbooks import QuickBooksConnector
from quickbridge.connectors.shopify import ShopifyConnector
from quickbridge.errors import NotAuthenticatedError


def get_config(request: Request) -> BridgeConfig:
    return request.app.state.config


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_oauth_client(request: Request) -> IntuitOAuthClient:
    return request.app.state.oauth_client


def get_auth_states(request: Request) -> AuthStateRegistry:
    return request.app.state.auth_states


def get_quickbooks(request: Request) -> QuickBooksConnector:
    return request.app.state.quickbooks


def get_shopify(request: Request) -> ShopifyConnector:
    return request.app.state.shopify


def require_connection(request: Request) -> TokenSet:
    """Gate for QuickBooks data routes.

    Passes the stored token set through (also as ``request.state.qb_tokens``)
    when one is present and complete, otherwise raises
    ``NotAuthenticatedError``, which the app renders as a 401. Makes no
    network calls and never changes the store.
    """
    store = get_store(request)
    token_set = store.get()
    if token_set is None or not store.has():
        raise NotAuthenticatedError()
    request.state.qb_tokens = token_set
    return token_set
