"""
QuickBridge authentication and token management.

Provides the QuickBooks OAuth2 client, the single-slot credential store,
and the refresh-on-401 token manager.
"""

from quickbridge.auth.oauth2 import (
    SCOPE_ACCOUNTING,
    ApiResponse,
    AuthStateRegistry,
    IntuitOAuthClient,
)
from quickbridge.auth.token_manager import ApiResult, TokenManager
from quickbridge.auth.tokens import (
    CredentialStore,
    EncryptedFileCredentialStore,
    InMemoryCredentialStore,
    TokenSet,
)

__all__ = [
    "SCOPE_ACCOUNTING",
    "ApiResponse",
    "ApiResult",
    "AuthStateRegistry",
    "CredentialStore",
    "EncryptedFileCredentialStore",
    "InMemoryCredentialStore",
    "IntuitOAuthClient",
    "TokenManager",
    "TokenSet",
]
