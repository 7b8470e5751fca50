# Hey future me - two health endpoints on purpose:
#
# - /health      → liveness. No dependency calls at all, safe for Docker HEALTHCHECK every few
#                  seconds. Mounted at the root (no /api prefix).
# - /api/health  → aggregated checks: Rentman reachability (one un-retried probe behind a circuit
#                  breaker), cache write/read, uploads in flight. 503 when anything is unhealthy.
"""Health check endpoints."""

import asyncio
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from rentgate.api.dependencies import (
    get_app_settings,
    get_cache,
    get_image_service,
    get_upstream,
    get_upstream_breaker,
)
from rentgate.application.cache import BaseCache
from rentgate.application.services.images import ImageResolutionService
from rentgate.config import Settings
from rentgate.domain.ports import IUpstreamClient
from rentgate.infrastructure.observability import (
    CircuitBreaker,
    HealthStatus,
    check_cache_health,
    check_uploads_health,
    check_upstream_health,
    overall_status,
)

liveness_router = APIRouter(tags=["health"])
router = APIRouter(prefix="/health", tags=["health"])


class LivenessStatus(BaseModel):
    """Simple liveness probe response."""

    status: str = Field(description="ok while the process serves requests")
    timestamp: str = Field(description="ISO timestamp")
    version: str = Field(description="Application version")


class HealthReport(BaseModel):
    """Aggregated health response."""

    success: bool
    status: str = Field(description="Overall status: healthy, degraded, unhealthy")
    timestamp: str = Field(description="ISO timestamp of health check")
    version: str = Field(description="Application version")
    uptime_seconds: float | None = Field(
        default=None, description="Seconds since app started"
    )
    checks: dict[str, Any] = Field(
        default_factory=dict, description="Individual component checks"
    )


@liveness_router.get("/health", response_model=LivenessStatus)
async def liveness_probe(
    settings: Settings = Depends(get_app_settings),
) -> LivenessStatus:
    """Returns 200 while the process is up. No dependency checks."""
    return LivenessStatus(
        status="ok",
        timestamp=datetime.now(UTC).isoformat(),
        version=settings.app_version,
    )


@router.get("", response_model=HealthReport)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    upstream: IUpstreamClient = Depends(get_upstream),
    cache: BaseCache[str, Any] = Depends(get_cache),
    image_service: ImageResolutionService = Depends(get_image_service),
    breaker: CircuitBreaker | None = Depends(get_upstream_breaker),
) -> JSONResponse:
    """Aggregated health. 200 for healthy/degraded, 503 for unhealthy."""
    upstream_check, cache_check = await asyncio.gather(
        check_upstream_health(upstream, breaker),
        check_cache_health(cache),
    )
    uploads_check = check_uploads_health(image_service.get_stats())
    checks = [upstream_check, cache_check, uploads_check]
    overall = overall_status(checks)

    started_at: datetime | None = getattr(request.app.state, "started_at", None)
    uptime = (datetime.now(UTC) - started_at).total_seconds() if started_at else None

    report = HealthReport(
        success=overall is not HealthStatus.UNHEALTHY,
        status=overall.value,
        timestamp=datetime.now(UTC).isoformat(),
        version=settings.app_version,
        uptime_seconds=uptime,
        checks={check.name: check.to_dict() for check in checks},
    )
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if overall is HealthStatus.UNHEALTHY
        else status.HTTP_200_OK
    )
    return JSONResponse(content=report.model_dump(), status_code=status_code)
