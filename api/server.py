"""
FastAPI Server - Relay HTTP surface.

Builds the application hosted by the lifecycle controller: the liveness
route plus request logging and connection timeout middleware. The product
API (handlers, services, repositories) will be mounted here.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from api.middleware import ConnectionTimeoutMiddleware
from api.routers import health_router
from app_settings import Settings
from utils.logging import get_logger, logging_middleware_helper

logger = get_logger("api.server")


def create_app(settings: Settings) -> FastAPI:
    """
    Create the Relay FastAPI application.

    Args:
        settings: Loaded settings; only the timeout fields and the
            environment label are read here.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown events."""
        logger.info(f"[STARTUP] Relay API starting (env={app.state.settings.environment})")
        yield
        logger.info("[SHUTDOWN] Relay API shutting down")

    app = FastAPI(
        title="Relay",
        description="Deployment control-plane",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log all HTTP requests with request ID tracking."""
        return await logging_middleware_helper(request, call_next)

    # Added last so it wraps the logging middleware
    app.add_middleware(
        ConnectionTimeoutMiddleware,
        read_timeout=settings.read_timeout,
        write_timeout=settings.write_timeout,
    )

    app.include_router(health_router)

    return app
