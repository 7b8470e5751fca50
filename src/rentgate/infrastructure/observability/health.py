"""Health check functionality with dependency monitoring."""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from rentgate.application.cache import BaseCache, CacheKeys
from rentgate.domain.ports import IUpstreamClient

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheck:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "details": self.details or {},
        }


class CircuitBreaker:
    """Simple circuit breaker for the upstream probe.

    Keeps /api/health from hammering Rentman when it is already down: after
    failure_threshold failed probes the check reports DEGRADED without calling
    out until timeout_seconds have passed.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout_seconds: Seconds to wait before trying again
            clock: Time source (override in tests)
        """
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self.failures = 0
        self.last_failure_time: float | None = None
        self.is_open = False

    def record_success(self) -> None:
        self.failures = 0
        self.is_open = False
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failures += 1
        self.last_failure_time = self._clock()

        if self.failures >= self.failure_threshold and not self.is_open:
            self.is_open = True
            logger.warning(
                "Circuit breaker opened after %d failures",
                self.failures,
                extra={"failures": self.failures, "threshold": self.failure_threshold},
            )

    def can_attempt(self) -> bool:
        """True if the circuit is closed or its timeout has passed."""
        if not self.is_open or self.last_failure_time is None:
            return True

        elapsed = self._clock() - self.last_failure_time
        if elapsed > self.timeout_seconds:
            logger.info(
                "Circuit breaker timeout passed, attempting call",
                extra={"elapsed_seconds": elapsed},
            )
            self.is_open = False
            self.failures = 0
            return True

        return False


async def check_upstream_health(
    upstream: IUpstreamClient, circuit_breaker: CircuitBreaker | None = None
) -> HealthCheck:
    """Check Rentman reachability with one un-retried probe.

    Args:
        upstream: Upstream client
        circuit_breaker: Optional breaker that short-circuits repeated probes

    Returns:
        Health check result
    """
    if circuit_breaker is not None and not circuit_breaker.can_attempt():
        return HealthCheck(
            name="rentman_api",
            status=HealthStatus.DEGRADED,
            message="Circuit breaker open, upstream temporarily unavailable",
            details={"failures": circuit_breaker.failures},
        )

    try:
        reachable = await upstream.health_check()
    except Exception as e:
        logger.exception("Rentman health check error", extra={"error": str(e)})
        reachable = False

    if circuit_breaker is not None:
        if reachable:
            circuit_breaker.record_success()
        else:
            circuit_breaker.record_failure()

    if reachable:
        return HealthCheck(
            name="rentman_api",
            status=HealthStatus.HEALTHY,
            message="Rentman API is accessible",
        )
    return HealthCheck(
        name="rentman_api",
        status=HealthStatus.UNHEALTHY,
        message="Rentman API connection failed",
    )


# Yo, the write-read-delete round trip uses a throwaway key so concurrent health probes can't
# read each other's value. Entry lives for at most a second even if delete never runs.
async def check_cache_health(cache: BaseCache[str, Any]) -> HealthCheck:
    """Check the cache can store and return a value.

    Args:
        cache: Response cache

    Returns:
        Health check result
    """
    key = f"{CacheKeys.health()}:{uuid.uuid4().hex}"
    probe = time.time()
    try:
        await cache.set(key, probe, 1)
        value = await cache.get(key)
        await cache.delete(key)
    except Exception as e:
        logger.exception("Cache health check error", extra={"error": str(e)})
        return HealthCheck(
            name="cache",
            status=HealthStatus.UNHEALTHY,
            message=f"Cache error: {e}",
        )

    stats = cache.get_stats() if hasattr(cache, "get_stats") else None
    if value != probe:
        return HealthCheck(
            name="cache",
            status=HealthStatus.UNHEALTHY,
            message="Cache read/write test failed",
            details=stats,
        )
    return HealthCheck(
        name="cache",
        status=HealthStatus.HEALTHY,
        message="Cache read/write OK",
        details=stats,
    )


def check_uploads_health(stats: dict[str, int]) -> HealthCheck:
    """Report in-flight uploads. Informational, never unhealthy."""
    return HealthCheck(
        name="image_uploads",
        status=HealthStatus.HEALTHY,
        message=f"{stats.get('uploads_in_flight', 0)} upload(s) in flight",
        details=stats,
    )


def overall_status(checks: list[HealthCheck]) -> HealthStatus:
    """Worst status wins."""
    statuses = {check.status for check in checks}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
