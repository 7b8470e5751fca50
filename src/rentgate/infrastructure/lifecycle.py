"""Application lifecycle management for startup and shutdown tasks.

This module is the composition root: the lifespan builds the cache, the
upstream client, the CDN store and the services, and hangs them on app.state
where api/dependencies.py picks them up. Nothing in the request path creates
its own long-lived objects.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI

from rentgate.application.cache import InMemoryCache
from rentgate.application.services.images import ImageResolutionService, InFlightUploads
from rentgate.application.services.media_service import MediaService
from rentgate.config import Settings, get_settings
from rentgate.domain.value_objects import SizeVariant
from rentgate.infrastructure.image_store import CloudinaryImageStore
from rentgate.infrastructure.integrations import RentmanClient
from rentgate.infrastructure.observability import CircuitBreaker, configure_logging

logger = logging.getLogger(__name__)


# Hey future me, lazy expiry in InMemoryCache.get() already keeps expired entries from being
# served. This loop only frees memory held by entries nobody asks for again. A failing sweep
# logs and tries again next interval, it must never kill the task.
async def run_cache_sweeper(cache: InMemoryCache[Any], interval_seconds: float) -> None:
    """Periodically drop expired cache entries until cancelled."""
    logger.info("Cache sweeper started (every %ss)", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await cache.cleanup_expired()
        except Exception as e:
            logger.exception("Cache sweep failed: %s", e)
            continue
        if removed:
            logger.info("Cache sweep removed %d expired entries", removed)


def init_services(app: FastAPI, settings: Settings) -> None:
    """Build every long-lived component and store it on app.state."""
    cache: InMemoryCache[Any] = InMemoryCache(
        max_size=settings.cache.max_size,
        default_ttl_seconds=settings.cache.ttl_seconds,
    )
    upstream = RentmanClient(settings.rentman)
    image_store = CloudinaryImageStore(settings.cloudinary)
    inflight = InFlightUploads()

    app.state.settings = settings
    app.state.cache = cache
    app.state.upstream = upstream
    app.state.image_store = image_store
    app.state.inflight = inflight
    app.state.upstream_breaker = CircuitBreaker()
    app.state.image_service = ImageResolutionService(
        cache=cache,
        image_store=image_store,
        upstream=upstream,
        url_ttl_seconds=settings.images.url_ttl_seconds,
        upstream_fetch_timeout=settings.images.upstream_fetch_timeout,
        default_size=SizeVariant(settings.images.default_size),
        inflight=inflight,
    )
    app.state.media_service = MediaService(
        upstream=upstream, cache=cache, ttl_seconds=settings.cache.ttl_seconds
    )


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# Missing credentials stop the startup right here (ConfigurationError) instead of surfacing as
# a confusing 401 from Rentman on the first image request.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown tasks including:
    - Logging configuration
    - Required settings validation
    - Service wiring onto app.state
    - Periodic cache sweep
    - Upstream HTTP client cleanup
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.observability.level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )
    logger.info(
        "Starting application: %s %s (%s)",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )

    sweeper_task: asyncio.Task[None] | None = None
    try:
        settings.validate_required()
        init_services(app, settings)
        app.state.started_at = datetime.now(UTC)

        if settings.cache.cleanup_interval_seconds > 0:
            sweeper_task = asyncio.create_task(
                run_cache_sweeper(app.state.cache, settings.cache.cleanup_interval_seconds),
                name="cache-sweeper",
            )

        logger.info(
            "Gateway ready: Rentman at %s, Cloudinary cloud %s",
            settings.rentman.base_url,
            settings.cloudinary.cloud_name,
        )
        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if sweeper_task is not None:
            sweeper_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper_task

        pending = getattr(app.state, "inflight", None)
        if pending is not None and len(pending):
            logger.warning(
                "Shutting down with %d upload(s) in flight: %s",
                len(pending),
                ", ".join(pending.pending()),
            )

        upstream = getattr(app.state, "upstream", None)
        if upstream is not None:
            try:
                await upstream.close()
                logger.info("Rentman HTTP client closed")
            except Exception as e:
                logger.exception("Error closing Rentman client: %s", e)
