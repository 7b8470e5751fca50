"""Middleware for observability: request/response logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rentgate.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me, this wraps EVERY request: picks up X-Correlation-ID (or mints one), logs
# "→ GET /api/images/x.jpg" on the way in and "✓ ... → 302 (12ms)" on the way out, and echoes
# the ID back in the response header. Image redirects are the bulk of traffic - set
# skip_paths if the liveness check gets too chatty.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    def __init__(
        self, app: ASGIApp, skip_paths: tuple[str, ...] = ("/health",)
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application
            skip_paths: Exact paths that are not logged (still get a correlation ID)
        """
        super().__init__(app)
        self.skip_paths = skip_paths

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/handler in chain

        Returns:
            Response from application
        """
        set_correlation_id(request.headers.get(CORRELATION_HEADER))

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        quiet = path in self.skip_paths

        if not quiet:
            logger.info(
                "→ %s %s",
                method,
                path,
                extra={
                    "method": method,
                    "path": path,
                    "query_params": str(request.query_params),
                    "client_ip": client_ip,
                },
            )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Request failed: %s %s",
                method,
                path,
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": int(duration_ms),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if not quiet:
            status_mark = "✓" if response.status_code < 400 else "✗"
            logger.info(
                "%s %s %s → %d (%.0fms)",
                status_mark,
                method,
                path,
                response.status_code,
                duration_ms,
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": int(duration_ms),
                },
            )

        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
