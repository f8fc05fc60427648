"""HTTP layer: FastAPI app factory, auth gate, and routes."""

from quickbridge.api.app import create_app

__all__ = ["create_app"]
