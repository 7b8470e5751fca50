"""Observability infrastructure: structured logging, request middleware, health."""

from rentgate.infrastructure.observability.health import (
    CircuitBreaker,
    HealthCheck,
    HealthStatus,
    check_cache_health,
    check_uploads_health,
    check_upstream_health,
    overall_status,
)
from rentgate.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from rentgate.infrastructure.observability.middleware import RequestLoggingMiddleware

__all__ = [
    "CircuitBreaker",
    "HealthCheck",
    "HealthStatus",
    "RequestLoggingMiddleware",
    "check_cache_health",
    "check_uploads_health",
    "check_upstream_health",
    "configure_logging",
    "get_correlation_id",
    "overall_status",
    "set_correlation_id",
]
