"""Shopify pass-through routes under ``/api/shopify``."""

from __future__ import annotations

import logging
from typing import Any, Awaitable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from quickbridge.api.dependencies import get_shopify
from quickbridge.connectors.shopify import ShopifyConnector
from quickbridge.errors import ShopifyError, VendorUnavailableError

logger = logging.getLogger("quickbridge.api.routes.shopify")

router = APIRouter(prefix="/api/shopify", tags=["shopify"])


def configured_shopify(shopify: ShopifyConnector = Depends(get_shopify)) -> ShopifyConnector | None:
    return shopify if shopify.configured else None


async def _proxy(shopify: ShopifyConnector | None, call: Any) -> Any:
    """Await ``call(shopify)`` and map failures to JSON error responses."""
    if shopify is None:
        return JSONResponse(
            status_code=503,
            content={"error": "Shopify not configured", "message": "Set SHOPIFY_STORE and SHOPIFY_ACCESS_TOKEN"},
        )
    try:
        awaitable: Awaitable[Any] = call(shopify)
        return await awaitable
    except ShopifyError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except VendorUnavailableError as e:
        logger.error("Shopify request failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})


def _params(request: Request) -> dict[str, str]:
    return dict(request.query_params)


# Products

@router.get("/products")
async def get_products(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.products(_params(request)))


@router.get("/products/count")
async def get_product_count(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.product_count(_params(request)))


@router.get("/products/{product_id}")
async def get_product(product_id: str, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.product(product_id))


# Orders

@router.get("/orders")
async def get_orders(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.orders(_params(request)))


@router.get("/orders/count")
async def get_order_count(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.order_count(_params(request)))


@router.get("/orders/{order_id}")
async def get_order(order_id: str, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.order(order_id))


# Customers

@router.get("/customers")
async def get_customers(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.customers(_params(request)))


@router.get("/customers/count")
async def get_customer_count(request: Request, shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.customer_count(_params(request)))


# Store

@router.get("/locations")
async def get_locations(shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.locations())


@router.get("/shop")
async def get_shop_info(shopify: ShopifyConnector | None = Depends(configured_shopify)):
    return await _proxy(shopify, lambda s: s.shop())
