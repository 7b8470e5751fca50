"""Media Service - property media rows reshaped for the frontend.

Hey future me - Rentman hands back media rows WITH the base64 image inlined.
Shipping that to a browser would be absurd, so this service strips it and
replaces it with four gateway URLs (/api/images/{base}_{size}{ext}). The browser
then hits the image route, which resolves to a CDN redirect.

Presented results are cached under CacheKeys.media / CacheKeys.media_file. Only
the presented MediaItems go into the cache, never the raw rows - a single
property can carry tens of megabytes of base64.
"""

from dataclasses import dataclass, field
from typing import Any

from rentgate.application.cache import BaseCache, CacheKeys
from rentgate.domain.dtos import MediaRecord
from rentgate.domain.exceptions import MediaNotFound, ValidationError
from rentgate.domain.ports import IUpstreamClient
from rentgate.domain.value_objects import ImageIdentifier, SizeVariant

IMAGE_ROUTE_PREFIX = "/api/images"


@dataclass(frozen=True)
class MediaItem:
    """One media file as the frontend sees it."""

    id: str
    caption: str
    order: int
    urls: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "caption": self.caption,
            "order": self.order,
            "urls": dict(self.urls),
        }


def image_urls(filename: str) -> dict[str, str]:
    """Gateway URLs for every size of one image, keyed by size name."""
    image = ImageIdentifier.parse(filename)
    return {
        size.value: f"{IMAGE_ROUTE_PREFIX}/{image.filename_for(size)}"
        for size in SizeVariant
    }


def present_media(record: MediaRecord) -> MediaItem:
    """Convert an upstream media row into a MediaItem (drops the payload)."""
    return MediaItem(
        id=record.filename,
        caption=record.caption,
        order=record.order,
        urls=image_urls(record.filename),
    )


class MediaService:
    """Media lookups by property or filename, cached after presentation."""

    def __init__(
        self,
        upstream: IUpstreamClient,
        cache: BaseCache[str, Any],
        ttl_seconds: float | None = None,
    ) -> None:
        """Initialize media service.

        Args:
            upstream: Rentman (or fake) client
            cache: Shared response cache
            ttl_seconds: TTL for cached lists, None = cache default
        """
        self._upstream = upstream
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    async def list_for_property(self, propref: str) -> list[MediaItem]:
        """All media of a property sorted by display order.

        Raises:
            ValidationError: empty propref
            MediaNotFound: property has no media
        """
        if not propref.strip():
            raise ValidationError("Property id must not be empty")

        cache_key = CacheKeys.media(propref)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        records = await self._upstream.fetch_media(propref=propref)
        # rows without a filename can't be served as images
        items = [present_media(r) for r in records if r.filename]
        if not items:
            raise MediaNotFound(f"No media found for property {propref}", propref)

        items.sort(key=lambda item: item.order)
        await self._cache.set(cache_key, items, self._ttl_seconds)
        return items

    async def get_file(self, filename: str) -> MediaItem:
        """Single media file by exact filename.

        Raises:
            ValidationError: empty filename
            MediaNotFound: no such file upstream
        """
        if not filename.strip():
            raise ValidationError("Filename must not be empty")

        cache_key = CacheKeys.media_file(filename)
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        records = await self._upstream.fetch_media(filename=filename)
        record = next((r for r in records if r.filename == filename), None)
        if record is None and records:
            record = records[0]
        if record is None or not record.filename:
            raise MediaNotFound(f"Media file {filename} not found", filename)

        item = present_media(record)
        await self._cache.set(cache_key, item, self._ttl_seconds)
        return item
