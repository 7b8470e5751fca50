"""FastAPI application factory and uvicorn entry point."""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentgate import __version__
from rentgate.api.exception_handlers import register_exception_handlers
from rentgate.api.routers import api_router
from rentgate.api.routers.health import liveness_router
from rentgate.config import Settings, get_settings
from rentgate.infrastructure.lifecycle import lifespan
from rentgate.infrastructure.observability import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Services are wired by the lifespan on startup. Tests skip the lifespan
    (TestClient without a with-block) and put fakes on app.state instead.

    Args:
        settings: Explicit settings, defaults to get_settings()

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Rentgate",
        description="Rentman property media gateway with Cloudinary image delivery",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware runs in reverse order of registration: logging wraps CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(liveness_router)
    app.include_router(api_router, prefix="/api")

    return app


def run() -> None:
    """Console entry point: `rentgate`."""
    settings = get_settings()
    uvicorn.run(
        "rentgate.main:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
