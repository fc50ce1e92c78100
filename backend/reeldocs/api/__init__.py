"""API routes for the video documentation pipeline."""

from reeldocs.api import models_routes, routes, websocket

__all__ = ["models_routes", "routes", "websocket"]
