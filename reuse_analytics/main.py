"""
FastAPI Production Application

Main entry point for the reusable-packaging analytics API.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
import structlog

from reuse_analytics.config import get_settings
from reuse_analytics.config.logging import configure_logging
from reuse_analytics.database.connection import close_database, get_session_factory, init_database
from reuse_analytics.exceptions import ConfigurationError
from reuse_analytics.serving.api.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from reuse_analytics.serving.api.routes import analytics_router, health_router, sync_router
from reuse_analytics.serving.redis_client import close_redis, init_redis
from reuse_analytics.serving.services import Services, build_services

logger = structlog.get_logger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        services: Prebuilt pipeline services; when omitted they are built
            from settings during startup
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Starting reuse analytics API", environment=settings.app_env)

        if services is not None:
            app.state.services = services
            yield
            return

        await init_database()
        redis = await init_redis() if settings.sync.lock_backend == "redis" else None
        app.state.services = build_services(get_session_factory(), redis=redis)

        yield

        logger.info("Shutting down...")
        await close_database()
        if redis is not None:
            await close_redis()

    app = FastAPI(
        title="Reuse Analytics API",
        description="Order ingestion and opt-in analytics for reusable packaging",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("Order source not configured", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(sync_router, prefix="/api/v1/sync", tags=["Sync"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])
    app.mount("/metrics", make_asgi_app())

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
