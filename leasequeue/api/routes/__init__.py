"""
API routes module.
"""

from leasequeue.api.routes.health import router as health_router
from leasequeue.api.routes.messages import router as messages_router

__all__ = ["messages_router", "health_router"]
