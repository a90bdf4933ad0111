"""
API routes module.
"""

from lider_gateway.api.routes.auth import router as auth_router
from lider_gateway.api.routes.health import router as health_router
from lider_gateway.api.routes.queues import router as queues_router

__all__ = ["queues_router", "auth_router", "health_router"]
