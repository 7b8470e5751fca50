"""Image resolution - filename in, servable CDN URL out.

Future me note:
This is THE hot path behind GET /api/images/{filename}. The pipeline, cheapest
tier first:

    1. Transform cache   image:{base}:{size}     in-memory, no await, no network
    2. CDN existence     image_store.existing()   one API call
    3. Upload            in-flight registry -> upstream fetch -> CDN upload
                         -> cache all 4 sizes

Tier 2 failing with NotFoundOnCdn OR TransientCdnError both fall through to tier
3 - a flaky Cloudinary admin API must never stop a first-time image from being
served.

Tier 3 is where concurrency bites: a property page loads 20 thumbnails of the
same never-seen image at once. InFlightUploads makes sure exactly ONE request
fetches from Rentman and uploads; the other 19 await the same future and pick
their size out of the shared result.

The owner re-reads the cache before fetching: a CDN check that went out before
another upload landed can still answer "not found" after it.

Failures are never cached. A failed upload clears its registry entry, the next
request starts over from scratch.

Every URL that enters the cache is a VersionedUrl (CDN version baked in) so a
cache hit can't point at a stale render after a re-upload.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass

from rentgate.application.cache import BaseCache, CacheKeys
from rentgate.application.services.images.inflight import InFlightUploads, UrlMap
from rentgate.domain.exceptions import (
    NotFoundOnCdn,
    TransientCdnError,
    UpstreamFetchFailure,
)
from rentgate.domain.ports import IImageStore, IUpstreamClient
from rentgate.domain.value_objects import ImageIdentifier, SizeVariant, VersionedUrl

logger = logging.getLogger(__name__)


@dataclass
class ResolutionStats:
    """Counters for the health endpoint. Reset only by restart."""

    cache_hits: int = 0
    cdn_hits: int = 0
    cdn_misses: int = 0
    cdn_errors: int = 0
    uploads_started: int = 0
    uploads_joined: int = 0
    uploads_failed: int = 0
    uploads_reused: int = 0


def pick_url(urls: UrlMap, size: SizeVariant) -> VersionedUrl:
    """Requested size from an upload result, medium if that size is absent."""
    url = urls.get(size) or urls.get(SizeVariant.MEDIUM)
    if url is None:
        raise KeyError(f"No URL for size {size.value} in upload result")
    return url


class ImageResolutionService:
    """Cache-first, CDN-second, upload-third image resolver."""

    def __init__(
        self,
        cache: BaseCache[str, VersionedUrl],
        image_store: IImageStore,
        upstream: IUpstreamClient,
        *,
        url_ttl_seconds: float = 3600,
        upstream_fetch_timeout: float = 20.0,
        default_size: SizeVariant = SizeVariant.MEDIUM,
        inflight: InFlightUploads | None = None,
    ) -> None:
        self.cache = cache
        self.image_store = image_store
        self.upstream = upstream
        self.url_ttl_seconds = url_ttl_seconds
        self.upstream_fetch_timeout = upstream_fetch_timeout
        self.default_size = default_size
        self.inflight = inflight or InFlightUploads()
        self.stats = ResolutionStats()

    # === Public API ===

    async def resolve(self, filename: str, size: str | None = None) -> VersionedUrl:
        """Resolve a requested filename to a versioned CDN URL.

        Args:
            filename: e.g. "prop1_thumb.jpg" or "prop1.jpg"
            size: optional size token (?size=), ignored when the filename has a suffix

        Raises:
            UpstreamImageNotFound / UpstreamDataMissing: nothing to upload (404)
            UpstreamFetchFailure / UpstreamClientError: upstream broke (502)
            UploadFailure: CDN rejected the upload (500)
        """
        image = ImageIdentifier.parse(filename, size, default=self.default_size)
        cache_key = CacheKeys.image(image.base_name, image.size_variant)

        # Tier 1 - no await before this return on a hit except the in-memory get
        cached = await self.cache.get(cache_key)
        if cached is not None:
            self.stats.cache_hits += 1
            logger.debug("Image found in cache: %s", filename)
            return cached

        # Tier 2
        url = await self._from_existing_asset(image)
        if url is not None:
            await self.cache.set(cache_key, url, self.url_ttl_seconds)
            return url

        # Tier 3
        urls = await self._upload_shared(image.base_name, lambda: self._fetch_and_upload(image))
        return pick_url(urls, image.size_variant)

    async def upload(self, payload: bytes, filename: str) -> UrlMap:
        """Upload caller-supplied bytes for filename and cache all sizes.

        Goes through the same registry: if an upload for this image is already
        running we wait for it to finish, then upload ours. Two uploads for one
        base_name never overlap.
        """
        image = ImageIdentifier.parse(filename)

        async def operation() -> UrlMap:
            return await self._upload_and_cache(image.base_name, payload)

        return await self._upload_exclusive(image.base_name, operation)

    async def invalidate(self, filename: str) -> int:
        """Forget every cached size of an image. Returns entries removed."""
        image = ImageIdentifier.parse(filename)
        removed = await self.cache.clear_matching(CacheKeys.image_pattern(image.base_name))
        logger.info("Invalidated %d cached URLs for %s", removed, image.base_name)
        return removed

    async def delete(self, filename: str) -> tuple[bool, int]:
        """Remove an image from the CDN and forget its cached URLs.

        Waits out any upload already running for the image. Requests that join
        while the delete runs start over afterwards instead of getting a result.

        Returns:
            (deleted on CDN, cached entries removed)
        """
        image = ImageIdentifier.parse(filename)
        future = await self._claim_exclusive(image.base_name)
        try:
            deleted = await self.image_store.delete(image.base_name)
            cleared = await self.invalidate(filename)
        finally:
            self.inflight.abandon(future)
            self.inflight.release(image.base_name, future)
        return deleted, cleared

    def get_stats(self) -> dict[str, int]:
        return {**asdict(self.stats), "uploads_in_flight": len(self.inflight)}

    # === Tiers ===

    async def _from_existing_asset(self, image: ImageIdentifier) -> VersionedUrl | None:
        try:
            asset = await self.image_store.existing(image.base_name)
        except NotFoundOnCdn:
            self.stats.cdn_misses += 1
            logger.info("Image %s not on CDN, fetching from upstream", image.base_name)
            return None
        except TransientCdnError as e:
            # fail open: treat like a miss and let the upload path have a go
            self.stats.cdn_errors += 1
            logger.warning(
                "CDN check failed for %s, falling back to upstream: %s",
                image.base_name,
                e.message,
                extra={"base_name": image.base_name, "details": e.details},
            )
            return None

        self.stats.cdn_hits += 1
        url = self.image_store.transform_url(asset.public_id, image.size_variant, asset.version)
        logger.info(
            "Image found on CDN: %s (version %s)", image.base_name, asset.version
        )
        return url

    async def _fetch_and_upload(self, image: ImageIdentifier) -> UrlMap:
        # An upload may have finished while our CDN check was still out. We own the
        # registry entry here, so nobody can start another one between this read and
        # the fetch below.
        reused = await self._cached_urls(image.base_name)
        if reused is not None:
            self.stats.uploads_reused += 1
            logger.info("Image %s was uploaded meanwhile, reusing cached URLs", image.base_name)
            return reused

        # Bounded so a hung Rentman can't pin the registry entry (and every waiter) forever.
        try:
            async with asyncio.timeout(self.upstream_fetch_timeout):
                record = await self.upstream.fetch_image(image.base_filename)
        except TimeoutError as e:
            raise UpstreamFetchFailure(
                f"Timed out after {self.upstream_fetch_timeout}s fetching "
                f"{image.base_filename} from Rentman",
                error_code="UPSTREAM_TIMEOUT",
            ) from e

        logger.info(
            "Fetched %s from upstream (%d bytes), uploading to CDN",
            image.base_filename,
            len(record.payload),
        )
        return await self._upload_and_cache(image.base_name, record.payload)

    async def _cached_urls(self, base_name: str) -> UrlMap | None:
        """All four cached sizes of an image, or None if any is missing."""
        urls: UrlMap = {}
        for size in SizeVariant:
            url = await self.cache.get(CacheKeys.image(base_name, size))
            if url is None:
                return None
            urls[size] = url
        return urls

    async def _upload_and_cache(self, base_name: str, payload: bytes) -> UrlMap:
        asset = await self.image_store.upload_original(payload, base_name)
        urls = self.image_store.urls_for(asset)
        for size, url in urls.items():
            await self.cache.set(CacheKeys.image(base_name, size), url, self.url_ttl_seconds)
        logger.info("Uploaded %s to CDN (version %s)", base_name, asset.version)
        return urls

    # === Registry plumbing ===

    async def _upload_shared(
        self, base_name: str, operation: Callable[[], Awaitable[UrlMap]]
    ) -> UrlMap:
        """Run operation as the single owner, or join the owner already running."""
        while True:
            future, is_owner = self.inflight.claim(base_name)
            if is_owner:
                return await self._run_as_owner(base_name, future, operation)

            self.stats.uploads_joined += 1
            logger.info("Image %s is already being uploaded, waiting", base_name)
            try:
                # shield: one impatient waiter disconnecting must not cancel everyone's upload
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                if future.cancelled() and not self._being_cancelled():
                    # the owner's request went away mid-upload - start over, maybe as owner
                    continue
                raise

    async def _upload_exclusive(
        self, base_name: str, operation: Callable[[], Awaitable[UrlMap]]
    ) -> UrlMap:
        """Run operation as owner, first waiting out any upload already in flight."""
        future = await self._claim_exclusive(base_name)
        return await self._run_as_owner(base_name, future, operation)

    async def _claim_exclusive(self, base_name: str) -> "asyncio.Future[UrlMap]":
        """Wait until no upload runs for base_name, then own its registry entry."""
        while True:
            future, is_owner = self.inflight.claim(base_name)
            if is_owner:
                return future

            logger.info("Waiting for in-flight upload of %s", base_name)
            # outcome of the other upload doesn't matter, only that it finished
            await asyncio.wait([future])

    async def _run_as_owner(
        self,
        base_name: str,
        future: "asyncio.Future[UrlMap]",
        operation: Callable[[], Awaitable[UrlMap]],
    ) -> UrlMap:
        self.stats.uploads_started += 1
        try:
            urls = await operation()
        except asyncio.CancelledError:
            self.inflight.abandon(future)
            raise
        except Exception as e:
            self.stats.uploads_failed += 1
            self.inflight.fail(future, e)
            raise
        else:
            self.inflight.settle(future, urls)
            return urls
        finally:
            self.inflight.release(base_name, future)

    @staticmethod
    def _being_cancelled() -> bool:
        task = asyncio.current_task()
        return task is not None and task.cancelling() > 0
