"""
API routers.
"""

from api.routers.health import LIVENESS_MESSAGE, router as health_router

__all__ = ["LIVENESS_MESSAGE", "health_router"]
