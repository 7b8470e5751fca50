"""Ports (interfaces) the application layer depends on.

Hey future me - the resolver and the media service ONLY talk to these. The
Rentman client and the Cloudinary store implement them in infrastructure/, tests
implement them with in-memory fakes. Keep them small.
"""

from abc import ABC, abstractmethod

from rentgate.domain.dtos import MediaRecord, RawImageRecord, UploadedAssetDescriptor
from rentgate.domain.value_objects import SizeVariant, VersionedUrl


class IUpstreamClient(ABC):
    """Property/media data source."""

    @abstractmethod
    async def fetch_media(
        self, *, filename: str | None = None, propref: str | None = None
    ) -> list[MediaRecord]:
        """Fetch media records by filename or property reference.

        Raises:
            ValidationError: if neither selector is given
            UpstreamFetchFailure: network/5xx after retries
            UpstreamClientError: 4xx from upstream
        """

    @abstractmethod
    async def fetch_image(self, filename: str) -> RawImageRecord:
        """Fetch and decode the raw bytes of one image.

        Raises:
            UpstreamImageNotFound: no record for filename
            UpstreamDataMissing: record without usable payload
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the upstream answers."""

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release network resources."""


class IImageStore(ABC):
    """Cloud image store that uploads once and renders sizes on read."""

    @abstractmethod
    async def upload_original(
        self, payload: bytes, base_name: str
    ) -> UploadedAssetDescriptor:
        """Upload raw bytes under a stable identifier.

        Raises:
            UploadFailure: the store rejected the upload
        """

    @abstractmethod
    async def existing(self, base_name: str) -> UploadedAssetDescriptor:
        """Look up the current asset for base_name.

        Raises:
            NotFoundOnCdn: no asset exists
            TransientCdnError: the lookup itself failed
        """

    @abstractmethod
    def transform_url(
        self, public_id: str, size: SizeVariant, version: str
    ) -> VersionedUrl:
        """Build a size-specific URL. Pure, no network."""

    def urls_for(
        self, asset: UploadedAssetDescriptor
    ) -> dict[SizeVariant, VersionedUrl]:
        """All four renditions of one asset, sharing its version."""
        return {
            size: self.transform_url(asset.public_id, size, asset.version)
            for size in SizeVariant
        }

    @abstractmethod
    async def delete(self, base_name: str) -> bool:
        """Remove an asset and purge its renditions.

        Returns:
            True if an asset was removed, False if none existed

        Raises:
            ExternalServiceError: the store failed to delete
        """


__all__ = ["IImageStore", "IUpstreamClient"]
