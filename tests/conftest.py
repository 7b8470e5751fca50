"""Shared fixtures: in-memory fakes for the CDN store and the Rentman API."""

import asyncio
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rentgate.application.cache import InMemoryCache
from rentgate.application.services.images import ImageResolutionService, InFlightUploads
from rentgate.application.services.media_service import MediaService
from rentgate.config import (
    CloudinarySettings,
    RentmanSettings,
    Settings,
)
from rentgate.domain.dtos import MediaRecord, RawImageRecord, UploadedAssetDescriptor
from rentgate.domain.exceptions import (
    NotFoundOnCdn,
    UploadFailure,
    UpstreamDataMissing,
    UpstreamImageNotFound,
    ValidationError,
)
from rentgate.domain.ports import IImageStore, IUpstreamClient
from rentgate.domain.value_objects import ImageIdentifier, SizeVariant, VersionedUrl
from rentgate.infrastructure.observability import CircuitBreaker
from rentgate.main import create_app

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"fake-jpeg-body" * 4

_TRANSFORMS = {
    SizeVariant.THUMB: "c_fill,g_auto,h_200,q_80,w_300",
    SizeVariant.MEDIUM: "c_fill,g_auto,h_600,q_85,w_800",
    SizeVariant.LARGE: "c_fill,g_auto,h_900,q_90,w_1200",
    SizeVariant.ORIGINAL: "q_auto",
}


class FakeImageStore(IImageStore):
    """CDN stand-in that records calls and versions every upload."""

    def __init__(self) -> None:
        self.assets: dict[str, UploadedAssetDescriptor] = {}
        self.upload_calls: list[str] = []
        self.existing_calls: list[str] = []
        self.existing_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.upload_delay = 0.0
        # per-call latency of existing(), popped front to back
        self.existing_delays: list[float] = []
        self.delete_calls: list[str] = []
        self.delete_delay = 0.0
        self._next_version = 1712345678

    def add_asset(self, base_name: str, version: str = "1700000000") -> UploadedAssetDescriptor:
        asset = UploadedAssetDescriptor(public_id=f"props/{base_name}", version=version)
        self.assets[base_name] = asset
        return asset

    async def upload_original(
        self, payload: bytes, base_name: str
    ) -> UploadedAssetDescriptor:
        self.upload_calls.append(base_name)
        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        if self.upload_error is not None:
            raise self.upload_error
        if not payload:
            raise UploadFailure(f"Refusing to upload empty payload for {base_name}")
        version = str(self._next_version)
        self._next_version += 1
        return self.add_asset(base_name, version)

    async def existing(self, base_name: str) -> UploadedAssetDescriptor:
        self.existing_calls.append(base_name)
        # answer reflects the CDN when the request went out, like a real network call
        asset = self.assets.get(base_name)
        delay = self.existing_delays.pop(0) if self.existing_delays else 0.0
        await asyncio.sleep(delay)
        if self.existing_error is not None:
            raise self.existing_error
        if asset is None:
            raise NotFoundOnCdn(f"props/{base_name}")
        return asset

    def transform_url(
        self, public_id: str, size: SizeVariant, version: str
    ) -> VersionedUrl:
        return VersionedUrl(
            f"https://res.cloudinary.com/demo/image/upload/{_TRANSFORMS[size]}/v{version}/{public_id}",
            version,
        )

    async def delete(self, base_name: str) -> bool:
        self.delete_calls.append(base_name)
        existed = self.assets.pop(base_name, None) is not None
        # gone right away, the call itself still takes a while
        await asyncio.sleep(self.delete_delay)
        return existed


class FakeUpstream(IUpstreamClient):
    """Rentman stand-in keyed by filename / propref."""

    def __init__(self) -> None:
        self.images: dict[str, bytes] = {}
        self.media: dict[str, list[MediaRecord]] = {}
        self.fetch_calls: list[str] = []
        self.media_calls: list[dict[str, Any]] = []
        self.fetch_delay = 0.0
        self.fetch_error: Exception | None = None
        self.fail_times = 0
        self.healthy = True
        self.closed = False

    async def fetch_media(
        self, *, filename: str | None = None, propref: str | None = None
    ) -> list[MediaRecord]:
        if not filename and not propref:
            raise ValidationError("Either propref or filename must be provided")
        self.media_calls.append({"filename": filename, "propref": propref})
        if propref:
            return list(self.media.get(propref, []))
        return [
            record
            for records in self.media.values()
            for record in records
            if record.filename == filename
        ]

    async def fetch_image(self, filename: str) -> RawImageRecord:
        self.fetch_calls.append(filename)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_error is not None and self.fail_times > 0:
            self.fail_times -= 1
            raise self.fetch_error
        if filename not in self.images:
            raise UpstreamImageNotFound(filename)
        payload = self.images[filename]
        if not payload:
            raise UpstreamDataMissing(filename)
        return RawImageRecord(
            base_name=ImageIdentifier.parse(filename).base_name,
            filename=filename,
            payload=payload,
        )

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def upstream() -> FakeUpstream:
    fake = FakeUpstream()
    fake.images["prop1.jpg"] = JPEG_BYTES
    return fake


@pytest.fixture
def cache() -> InMemoryCache[Any]:
    return InMemoryCache(max_size=100, default_ttl_seconds=3600)


@pytest.fixture
def inflight() -> InFlightUploads:
    return InFlightUploads()


@pytest.fixture
def image_service(
    cache: InMemoryCache[Any],
    image_store: FakeImageStore,
    upstream: FakeUpstream,
    inflight: InFlightUploads,
) -> ImageResolutionService:
    return ImageResolutionService(
        cache=cache,
        image_store=image_store,
        upstream=upstream,
        url_ttl_seconds=3600,
        upstream_fetch_timeout=2.0,
        inflight=inflight,
    )


@pytest.fixture
def media_service(cache: InMemoryCache[Any], upstream: FakeUpstream) -> MediaService:
    return MediaService(upstream=upstream, cache=cache)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        rentman=RentmanSettings(token="test-token", retries=0, retry_delay=0),
        cloudinary=CloudinarySettings(cloud_name="demo", api_key="key", api_secret="secret"),
    )


# Hey future me - no `with TestClient(app)` on purpose: that would run the lifespan and wire the
# real Rentman/Cloudinary clients. We put the fakes on app.state ourselves.
@pytest.fixture
def app(
    settings: Settings,
    cache: InMemoryCache[Any],
    upstream: FakeUpstream,
    image_store: FakeImageStore,
    inflight: InFlightUploads,
    image_service: ImageResolutionService,
    media_service: MediaService,
) -> FastAPI:
    application = create_app(settings)
    application.state.cache = cache
    application.state.upstream = upstream
    application.state.image_store = image_store
    application.state.inflight = inflight
    application.state.image_service = image_service
    application.state.media_service = media_service
    application.state.upstream_breaker = CircuitBreaker()
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, follow_redirects=False)
