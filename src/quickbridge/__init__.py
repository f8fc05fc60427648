"""
QuickBridge: the QuickBooks and Shopify API bridge behind the small-business
dashboard.

Connect once through Intuit OAuth, then read accounting data without
thinking about expiring tokens.
"""

__version__ = "0.3.0"
__all__ = ["create_app"]

from quickbridge.api.app import create_app  # noqa: E402
