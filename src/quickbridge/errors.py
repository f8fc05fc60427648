"""Exception hierarchy for QuickBridge.

Every failure the bridge can surface to an HTTP caller is one of these, so
routes branch on the type instead of probing response attributes.
"""

from __future__ import annotations

from typing import Any


class QuickBridgeError(Exception):
    """Base class for all QuickBridge errors.

    ``refreshed_token_set`` is set when a token refresh succeeded before the
    failure, so the caller can still store the rotated tokens.
    """

    refreshed_token_set: Any = None


class AuthExchangeError(QuickBridgeError):
    """The authorization code was rejected (invalid, expired, reused, or a
    redirect URI mismatch). The login attempt has to start over."""


class StateMismatchError(AuthExchangeError):
    """The callback carried an unknown, expired, or replayed ``state``."""


class RefreshError(QuickBridgeError):
    """The refresh token is invalid or revoked. Never retried."""


class NotAuthenticatedError(QuickBridgeError):
    """No usable token set is stored. Raised locally, never reaches the vendor."""

    def __init__(self, message: str = "Please connect to QuickBooks first") -> None:
        super().__init__(message)
        self.message = message


class ApiCallError(QuickBridgeError):
    """The vendor API answered with a non-success status."""

    def __init__(self, status_code: int, body: Any = None, message: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or _describe_failure(status_code, body))


class VendorUnavailableError(QuickBridgeError):
    """The vendor could not be reached (connection failure or timeout)."""


class ShopifyError(QuickBridgeError):
    """Shopify answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _describe_failure(status_code: int, body: Any) -> str:
    """Pull a human readable message out of an Intuit error body."""
    detail = ""
    if isinstance(body, dict):
        fault = body.get("Fault") or body.get("fault") or {}
        errors = fault.get("Error") or fault.get("error") or []
        if errors and isinstance(errors, list):
            first = errors[0]
            detail = first.get("Detail") or first.get("Message") or first.get("message") or ""
        detail = detail or body.get("error_description") or body.get("error") or ""
    elif isinstance(body, str):
        detail = body[:200]
    if detail:
        return f"QuickBooks API request failed with status {status_code}: {detail}"
    return f"QuickBooks API request failed with status {status_code}"


__all__ = [
    "QuickBridgeError",
    "AuthExchangeError",
    "StateMismatchError",
    "RefreshError",
    "NotAuthenticatedError",
    "ApiCallError",
    "VendorUnavailableError",
    "ShopifyError",
]
