"""API router initialization."""

# Hey future me, api_router collects the /api sub-routers and gets mounted at /api in main.py, so
# images.router (prefix "/images") ends up at /api/images/... The liveness router is NOT in here:
# /health lives at the root for Docker HEALTHCHECK.

from fastapi import APIRouter

from rentgate.api.routers import health, images, media

api_router = APIRouter()

api_router.include_router(images.router)
api_router.include_router(media.router)
api_router.include_router(health.router)

__all__ = [
    "api_router",
    "health",
    "images",
    "media",
]
