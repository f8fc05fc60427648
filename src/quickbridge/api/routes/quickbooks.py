"""
QuickBooks data routes. Every route sits behind the connection gate.

  GET /api/{invoices,customers,salesreceipts,accounts,bills,purchases,items,billpayments}
  GET /api/company-info
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from quickbridge.api.dependencies import get_quickbooks, require_connection
from quickbridge.auth.tokens import TokenSet
from quickbridge.connectors.quickbooks import ENTITIES, QuickBooksConnector
from quickbridge.errors import ApiCallError, QuickBridgeError

logger = logging.getLogger("quickbridge.api.routes.quickbooks")

router = APIRouter(prefix="/api", tags=["quickbooks"])


def _failure(what: str, error: QuickBridgeError) -> JSONResponse:
    logger.error("Error fetching %s: %s", what, error)
    content: dict[str, Any] = {"error": f"Failed to fetch {what}", "message": str(error)}
    if isinstance(error, ApiCallError):
        content["status"] = error.status_code
    return JSONResponse(status_code=500, content=content)


def _entity_endpoint(entity_name: str, entity_key: str) -> Callable[..., Awaitable[Any]]:
    async def endpoint(
        token_set: TokenSet = Depends(require_connection),
        quickbooks: QuickBooksConnector = Depends(get_quickbooks),
    ):
        try:
            return await quickbooks.query_entity(token_set, entity_name, entity_key)
        except QuickBridgeError as e:
            return _failure(entity_name, e)

    endpoint.__doc__ = f"List {entity_name} records."
    return endpoint


for _segment, (_entity_name, _entity_key) in ENTITIES.items():
    router.add_api_route(
        f"/{_segment}",
        _entity_endpoint(_entity_name, _entity_key),
        methods=["GET"],
        name=f"get_{_segment}",
    )


@router.get("/company-info")
async def get_company_info(
    token_set: TokenSet = Depends(require_connection),
    quickbooks: QuickBooksConnector = Depends(get_quickbooks),
):
    try:
        return await quickbooks.company_info(token_set)
    except QuickBridgeError as e:
        return _failure("company info", e)
