"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from novelhub.config import get_settings
from novelhub.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe: the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe: the engagement services are wired.

    Redis is optional, so its absence is reported but does not fail the probe.
    """
    settings = get_settings()
    ready = getattr(request.app.state, "coordinator", None) is not None
    return ORJSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "environment": settings.environment,
            "debug": settings.debug,
            "redis": get_redis() is not None,
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
