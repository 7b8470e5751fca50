"""In-flight upload registry.

Hey future me - this is what guarantees AT MOST ONE UPLOAD PER base_name.

claim() is a plain (non-async) method: the "is somebody already uploading?"
check and the "no, so it's me now" insert happen with no await in between. On a
single asyncio event loop nothing else can run between those two lines, so two
concurrent requests for the same image can never both become the owner. No lock
needed - and adding an await inside claim() would break the guarantee.

This only holds inside ONE process. Run several workers/instances and each has
its own registry; you'd need a shared store with atomic check-and-set (e.g.
Redis SET NX) to keep the invariant across processes.
"""

import asyncio
import logging

from rentgate.domain.value_objects import SizeVariant, VersionedUrl

logger = logging.getLogger(__name__)

UrlMap = dict[SizeVariant, VersionedUrl]


class InFlightUploads:
    """Maps base_name -> the one pending upload future shared by all waiters."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future[UrlMap]] = {}

    def claim(self, base_name: str) -> tuple[asyncio.Future[UrlMap], bool]:
        """Return (future, is_owner). Atomic check-and-insert.

        The owner MUST eventually call settle()/fail()/abandon() and release().
        Everyone else just awaits the future.
        """
        existing = self._pending.get(base_name)
        if existing is not None:
            return existing, False

        future: asyncio.Future[UrlMap] = asyncio.get_running_loop().create_future()
        self._pending[base_name] = future
        logger.info("Upload lock acquired for %s", base_name)
        return future, True

    @staticmethod
    def settle(future: asyncio.Future[UrlMap], urls: UrlMap) -> None:
        if not future.done():
            future.set_result(urls)

    @staticmethod
    def fail(future: asyncio.Future[UrlMap], exc: BaseException) -> None:
        if future.done():
            return
        future.set_exception(exc)
        # Mark as retrieved - with zero waiters asyncio would otherwise log
        # "Future exception was never retrieved" for an error we already re-raise.
        future.exception()

    @staticmethod
    def abandon(future: asyncio.Future[UrlMap]) -> None:
        if not future.done():
            future.cancel()

    def release(self, base_name: str, future: asyncio.Future[UrlMap]) -> None:
        """Drop the registry entry, but only if it is still ours."""
        if self._pending.get(base_name) is future:
            del self._pending[base_name]
            logger.info("Upload lock released for %s", base_name)

    def is_pending(self, base_name: str) -> bool:
        return base_name in self._pending

    def pending(self) -> list[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)
