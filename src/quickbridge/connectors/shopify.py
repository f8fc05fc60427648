"""
Shopify Admin API connector: read-only pass-through.

Authenticates with a static private-app access token (no OAuth dance) and
forwards query parameters verbatim. Upstream failures keep their status code
so the route layer can mirror it.

API Documentation: https://shopify.dev/docs/api/admin-rest
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from quickbridge.connectors.base import BaseConnector
from quickbridge.errors import ShopifyError, VendorUnavailableError

logger = logging.getLogger("quickbridge.connectors.shopify")

DEFAULT_API_VERSION = "2024-01"


class ShopifyConnector(BaseConnector):
    """Proxy reads to the Shopify Admin REST API.

    Usage::

        connector = ShopifyConnector(
            store="my-shop.myshopify.com",
            access_token="shpat_...",
        )
        products = await connector.products({"limit": "50"})
    """

    name = "shopify"
    description = "Shopify Admin REST API pass-through"

    def __init__(
        self,
        store: str,
        access_token: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self.access_token = access_token
        self.api_version = api_version or DEFAULT_API_VERSION
        self.timeout = timeout
        self._transport = transport
        self._base_url = f"https://{store}/admin/api/{self.api_version}"
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.store and self.access_token)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.access_token,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET ``path`` (relative to the Admin API base) and return its JSON.

        Raises:
            ShopifyError: Shopify answered with a non-2xx status.
            VendorUnavailableError: Shopify could not be reached.
        """
        client = await self._get_client()
        try:
            resp = await client.get(path, params=dict(params or {}))
        except httpx.TransportError as e:
            raise VendorUnavailableError(f"Shopify unreachable: {type(e).__name__}") from e

        if resp.is_error:
            message = _error_message(resp)
            logger.error("Shopify %s failed with %d: %s", path, resp.status_code, message)
            raise ShopifyError(resp.status_code, message)
        return resp.json()

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def products(self, params: Mapping[str, Any] | None = None) -> Any:
        return await self.get("/products.json", params)

    async def product_count(self, params: Mapping[str, Any] | None = None) -> Any:
        return await self.get("/products/count.json", params)

    async def product(self, product_id: str) -> Any:
        return await self.get(f"/products/{product_id}.json")

    async def orders(self, params: Mapping[str, Any] | None = None) -> Any:
        # Shopify only returns open orders unless asked for all of them
        return await self.get("/orders.json", {**(params or {}), "status": "any"})

    async def order_count(self, params: Mapping[str, Any] | None = None) -> Any:
        return await self.get("/orders/count.json", {**(params or {}), "status": "any"})

    async def order(self, order_id: str) -> Any:
        return await self.get(f"/orders/{order_id}.json")

    async def customers(self, params: Mapping[str, Any] | None = None) -> Any:
        return await self.get("/customers.json", params)

    async def customer_count(self, params: Mapping[str, Any] | None = None) -> Any:
        return await self.get("/customers/count.json", params)

    async def locations(self) -> Any:
        return await self.get("/locations.json")

    async def shop(self) -> Any:
        return await self.get("/shop.json")


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"Request failed with status code {resp.status_code}"
    errors = data.get("errors") if isinstance(data, dict) else None
    if isinstance(errors, str):
        return errors
    if errors:
        return str(errors)
    return f"Request failed with status code {resp.status_code}"
