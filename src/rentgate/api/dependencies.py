"""Dependency injection for API endpoints.

Everything lives on app.state, put there by the lifespan (infrastructure/lifecycle.py)
or directly by tests. A missing attribute means startup didn't run or failed:
answer 503 instead of an AttributeError 500.
"""

from typing import Any, cast

from fastapi import HTTPException, Request

from rentgate.application.cache import BaseCache
from rentgate.application.services.images import ImageResolutionService
from rentgate.application.services.media_service import MediaService
from rentgate.config import Settings, get_settings
from rentgate.domain.ports import IUpstreamClient
from rentgate.infrastructure.observability import CircuitBreaker


def _from_state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{label} not initialized")
    return value


def get_image_service(request: Request) -> ImageResolutionService:
    """Get the image resolver from app state.

    Raises:
        HTTPException: 503 if not initialized
    """
    return cast(
        ImageResolutionService, _from_state(request, "image_service", "Image service")
    )


def get_media_service(request: Request) -> MediaService:
    """Get the media service from app state.

    Raises:
        HTTPException: 503 if not initialized
    """
    return cast(MediaService, _from_state(request, "media_service", "Media service"))


def get_cache(request: Request) -> BaseCache[str, Any]:
    return cast(BaseCache[str, Any], _from_state(request, "cache", "Cache"))


def get_upstream(request: Request) -> IUpstreamClient:
    return cast(IUpstreamClient, _from_state(request, "upstream", "Upstream client"))


def get_upstream_breaker(request: Request) -> CircuitBreaker | None:
    # optional: health still works without a breaker
    return getattr(request.app.state, "upstream_breaker", None)


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()
