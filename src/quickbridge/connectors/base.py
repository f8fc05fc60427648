"""
Base connector: shared surface for the SaaS APIs the bridge proxies.

Connectors own their HTTP clients and translate vendor responses into plain
JSON-ready structures for the routes. They raise ``quickbridge.errors``
types; turning those into HTTP responses is the route layer's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseConnector(ABC):
    """Abstract base class for vendor connectors.

    Subclasses set ``name`` and release their HTTP clients in ``close()``,
    which the app calls on shutdown.
    """

    name: str = "base"
    description: str = "Base connector"

    @abstractmethod
    async def close(self) -> None:
        """Release any open clients."""
        ...
