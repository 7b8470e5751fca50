# Hey future me - retry with exponential backoff for flaky upstream calls!
#
# The Rentman API drops connections and throws the odd 502 under load. Those
# are TEMPORARY - waiting and retrying almost always works. 4xx are NOT
# temporary (bad token, bad params) and must fail fast, so every caller passes
# a predicate deciding what is retryable.
#
# USAGE:
#   result = await execute_with_retry(lambda: client.get(...), max_attempts=4)
"""Retry utilities with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always(_exc: Exception) -> bool:
    return True


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    max_delay: float | None = None,
    should_retry: Callable[[Exception], bool] = _always,
    description: str = "operation",
) -> T:
    """Execute an async operation, retrying retryable failures.

    The backoff is exponential: initial_delay * backoff_factor ** attempt
    (1s -> 2s -> 4s with the defaults), optionally capped at max_delay.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total attempts including the first one (>= 1)
        initial_delay: Delay before the first retry in seconds
        backoff_factor: Multiplier applied per retry
        max_delay: Optional cap on a single delay
        should_retry: Predicate; False re-raises immediately
        description: Used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception once attempts are exhausted, or any non-retryable one.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay
    start_time = time.monotonic()

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e):
                raise

            if attempt >= max_attempts - 1:
                elapsed = (time.monotonic() - start_time) * 1000
                logger.error(
                    "%s failed after %d attempts (%.0fms total), giving up: %s",
                    description,
                    max_attempts,
                    elapsed,
                    e,
                )
                raise

            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description,
                attempt + 1,
                max_attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            delay = delay * backoff_factor
            if max_delay is not None:
                delay = min(delay, max_delay)

    # range(max_attempts) always returns or raises above
    raise RuntimeError("Unexpected state in execute_with_retry")
