"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from reuse_analytics.config import get_settings
from reuse_analytics.database.connection import check_database_health
from reuse_analytics.serving.api.dependencies import get_services
from reuse_analytics.serving.redis_client import check_redis_health
from reuse_analytics.serving.services import Services

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity (redis lock backend only)
    - Order source configuration
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    db_health = await check_database_health(services.session_factory)
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    if settings.sync.lock_backend == "redis":
        redis_ok = await check_redis_health()
        checks["redis"] = {"status": "healthy" if redis_ok else "unhealthy"}
        if not redis_ok and overall_status == "healthy":
            overall_status = "degraded"

    checks["order_source"] = {"configured": services.fetcher.is_configured}
    if not services.fetcher.is_configured and overall_status == "healthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    services: Services = Depends(get_services),
) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 if the database answers.
    """
    db_health = await check_database_health(services.session_factory)
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
