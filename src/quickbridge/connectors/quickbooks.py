"""
QuickBooks Online connector: entity queries and company info.

Each operation issues one request through the ``TokenManager`` and, when the
manager had to refresh, writes the new token set to the credential store
before returning. A rejected refresh token clears the store unless newer
tokens were stored meanwhile.

QuickBooks API docs:
  https://developer.intuit.com/app/developer/qbo/docs/api/accounting/all-entities
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from quickbridge.auth.token_manager import TokenManager
from quickbridge.auth.tokens import CredentialStore, TokenSet
from quickbridge.connectors.base import BaseConnector
from quickbridge.errors import QuickBridgeError, RefreshError

logger = logging.getLogger("quickbridge.connectors.quickbooks")

_QUERY_MINOR_VERSION = 75
_COMPANY_INFO_MINOR_VERSION = 65

# Max results returned by one entity query
_MAX_RESULTS = 100

# Route segment -> (QBO entity name, QueryResponse key)
ENTITIES: dict[str, tuple[str, str]] = {
    "invoices": ("Invoice", "Invoice"),
    "customers": ("Customer", "Customer"),
    "salesreceipts": ("SalesReceipt", "SalesReceipt"),
    "accounts": ("Account", "Account"),
    "bills": ("Bill", "Bill"),
    "purchases": ("Purchase", "Purchase"),
    "items": ("Item", "Item"),
    "billpayments": ("BillPayment", "BillPayment"),
}


class QuickBooksConnector(BaseConnector):
    """Read QuickBooks Online entities for the connected company.

    Usage::

        connector = QuickBooksConnector(store, token_manager)
        invoices = await connector.query_entity(store.get(), "Invoice", "Invoice")
        info = await connector.company_info(store.get())
    """

    name = "quickbooks"
    description = "QuickBooks Online accounting data"

    def __init__(
        self,
        store: CredentialStore,
        token_manager: TokenManager,
        *,
        max_results: int = _MAX_RESULTS,
    ) -> None:
        self.store = store
        self.token_manager = token_manager
        self.max_results = max_results

    async def close(self) -> None:
        await self.token_manager.oauth.close()

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    async def _fetch(self, token_set: TokenSet, url: str, *, retry_stale: bool = True) -> Any:
        """Call ``url`` and keep the credential store in step with refreshes.

        A rejected refresh clears the store only when the store still holds
        the rejected set. If another request already stored newer tokens for
        the same realm, the call is retried once with those instead.
        """
        try:
            result = await self.token_manager.call_with_auto_refresh(url, token_set)
        except RefreshError:
            current = self.store.get()
            if current == token_set:
                logger.warning("Refresh token rejected for realm %s; disconnecting", token_set.realm_id)
                self.store.clear()
                raise
            newer = current is not None and current.is_valid and current.realm_id == token_set.realm_id
            if retry_stale and newer:
                logger.info("Tokens for realm %s were rotated by another request; retrying", token_set.realm_id)
                return await self._fetch(current, url, retry_stale=False)
            raise
        except QuickBridgeError as e:
            if e.refreshed_token_set is not None:
                self.store.set(e.refreshed_token_set)
            raise

        if result.refreshed:
            self.store.set(result.token_set)
            logger.debug("Stored refreshed tokens for realm %s", token_set.realm_id)
        return result.body

    def query_url(self, token_set: TokenSet, entity_name: str) -> str:
        query = f"SELECT * FROM {entity_name} MAXRESULTS {self.max_results}"
        base = self.token_manager.qbo_base_url(token_set.realm_id)
        return f"{base}/query?query={quote(query, safe='')}&minorversion={_QUERY_MINOR_VERSION}"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def query_entity(
        self,
        token_set: TokenSet,
        entity_name: str,
        entity_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Run ``SELECT * FROM <entity_name>`` and return the entity list.

        Returns an empty list when the response has no ``entity_key`` entry.
        """
        body = await self._fetch(token_set, self.query_url(token_set, entity_name))
        response = (body.get("QueryResponse") if isinstance(body, dict) else None) or {}
        entities = response.get(entity_key or entity_name) or []
        logger.info("Fetched %d %s records from QuickBooks", len(entities), entity_name)
        return entities

    async def company_info(self, token_set: TokenSet) -> dict[str, Any]:
        """Return the ``CompanyInfo`` object for the connected realm."""
        realm = quote(str(token_set.realm_id), safe="")
        url = (
            f"{self.token_manager.qbo_base_url(token_set.realm_id)}"
            f"/companyinfo/{realm}?minorversion={_COMPANY_INFO_MINOR_VERSION}"
        )
        body = await self._fetch(token_set, url)
        if not isinstance(body, dict):
            return {}
        return body.get("CompanyInfo") or {}

