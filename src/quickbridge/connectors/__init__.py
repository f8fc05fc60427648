"""Connectors package: vendor API integrations."""
from quickbridge.connectors.base import BaseConnector
from quickbridge.connectors.quickbooks import ENTITIES, QuickBooksConnector
from quickbridge.connectors.shopify import ShopifyConnector

__all__ = [
    "BaseConnector",
    "ENTITIES",
    "QuickBooksConnector",
    "ShopifyConnector",
]
