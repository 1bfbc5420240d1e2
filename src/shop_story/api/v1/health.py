"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shop_story import __version__
from shop_story.config import get_settings
from shop_story.infrastructure.redis import CacheService, get_cache
from shop_story.middleware.timing import get_endpoint_stats

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(cache: CacheService = Depends(get_cache)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information. The event store
    backend reflects the live client, so it reads ``memory`` while Redis is
    enabled but unreachable.
    """
    settings = get_settings()
    connected = cache.client is not None
    if not settings.redis_enabled:
        redis_status = "disabled"
    else:
        redis_status = "connected" if connected else "unavailable"

    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "redis": redis_status,
            "event_store": "redis" if connected else "memory",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(cache: CacheService = Depends(get_cache)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Pings Redis when it is enabled. With Redis disabled the service runs on
    the in-memory store and is always ready.
    """
    checks: dict[str, bool] = {}
    if get_settings().redis_enabled:
        checks["redis"] = await cache.health_check()

    return ReadinessResponse(ready=all(checks.values()), checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/stats")
async def timing_stats() -> dict[str, dict]:
    """Per-route latency stats collected by the timing middleware."""
    return get_endpoint_stats()
