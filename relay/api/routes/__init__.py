"""
API Routes

Modular route definitions for the relay API.
"""
from relay.api.routes.health import router as health_router
from relay.api.routes.events import router as events_router
from relay.api.routes.metrics import router as metrics_router

__all__ = [
    "health_router",
    "events_router",
    "metrics_router",
]
