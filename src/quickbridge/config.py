"""
QuickBridge configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from quickbridge.auth.oauth2 import SCOPE_ACCOUNTING


class QuickBooksConfig(BaseModel):
    """Intuit app credentials and OAuth settings."""

    client_id: str = Field(default="", description="Intuit app client id")
    client_secret: str = Field(default="", description="Intuit app client secret")
    redirect_uri: str = Field(default="http://localhost:5000/callback")
    environment: Literal["sandbox", "production"] = Field(default="sandbox")
    scopes: list[str] = Field(default_factory=lambda: [SCOPE_ACCOUNTING])
    token_file: str | None = Field(
        default=None,
        description="Persist tokens to this encrypted file (in-memory when unset)",
    )
    token_encryption_key: str | None = Field(
        default=None,
        description="Fernet key for token_file (derived from the machine when unset)",
    )
    state_ttl_seconds: int = Field(default=600, ge=1)

    @property
    def sandbox(self) -> bool:
        return self.environment == "sandbox"


class ShopifyConfig(BaseModel):
    """Shopify Admin API access (static private-app token)."""

    store: str = Field(default="", description="Store domain, e.g. my-shop.myshopify.com")
    access_token: str = Field(default="")
    api_version: str = Field(default="2024-01")


class SupabaseConfig(BaseModel):
    """Public Supabase client settings served to the dashboard."""

    url: str = Field(default="https://dummy-project.supabase.co")
    anon_key: str = Field(default="dummy-anon-key-ey...")


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000, ge=1, le=65535)
    frontend_url: str | None = Field(default=None, description="Dashboard URL for redirects and CORS")
    production: bool = Field(default=False, description="Hide internal error messages")
    log_level: str = Field(default="INFO")


class BridgeConfig(BaseModel):
    """Root configuration for QuickBridge."""

    quickbooks: QuickBooksConfig = Field(default_factory=QuickBooksConfig)
    shopify: ShopifyConfig = Field(default_factory=ShopifyConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    http_timeout: float = Field(default=30.0, gt=0, le=120, description="Outbound request timeout (s)")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> BridgeConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        _apply_env(data, "quickbooks", {
            "client_id": "CLIENT_ID",
            "client_secret": "CLIENT_SECRET",
            "redirect_uri": "REDIRECT_URI",
            "environment": "ENVIRONMENT",
            "token_file": "QUICKBRIDGE_TOKEN_FILE",
            "token_encryption_key": "QUICKBRIDGE_TOKEN_KEY",
        })
        _apply_env(data, "shopify", {
            "store": "SHOPIFY_STORE",
            "access_token": "SHOPIFY_ACCESS_TOKEN",
            "api_version": "SHOPIFY_API_VERSION",
        })
        _apply_env(data, "supabase", {
            "url": "SUPABASE_URL",
            "anon_key": "SUPABASE_ANON_KEY",
        })
        _apply_env(data, "server", {
            "frontend_url": "FRONTEND_URL",
            "port": "PORT",
            "log_level": "QUICKBRIDGE_LOG_LEVEL",
        })

        env_mode = os.environ.get("QUICKBRIDGE_ENV") or os.environ.get("NODE_ENV")
        if env_mode:
            server = data.get("server") or {}
            server["production"] = env_mode.lower() == "production"
            data["server"] = server

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)

    def redacted(self) -> dict[str, Any]:
        """Configuration as a dict with secrets masked, for display."""
        data = self.model_dump()
        for section, key in (
            ("quickbooks", "client_secret"),
            ("quickbooks", "token_encryption_key"),
            ("shopify", "access_token"),
        ):
            if data[section].get(key):
                data[section][key] = "********"
        return data


def _apply_env(data: dict[str, Any], section: str, mapping: dict[str, str]) -> None:
    values = {key: os.environ[var] for key, var in mapping.items() if os.environ.get(var)}
    if values:
        merged = data.get(section) or {}
        merged.update(values)
        data[section] = merged
