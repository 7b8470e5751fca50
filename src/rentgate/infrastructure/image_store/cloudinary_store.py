"""Cloudinary-backed image store.

Hey future me - the trick here is "upload once, transform on read". We push the
ORIGINAL bytes a single time under {folder}/{base_name} and every size is just a
different URL (c_fill,w_300,h_200,... baked into the path). No eager transforms,
no second upload per size.

The Cloudinary SDK is blocking (urllib3 under the hood), so every network call
goes through asyncio.to_thread - never call cloudinary.uploader / cloudinary.api
straight from a coroutine or you freeze the event loop for the whole upload.
URL building (cloudinary_url) is pure string work and runs inline.

Credentials are passed per call instead of cloudinary.config() so two stores
with different accounts (tests!) don't stomp on global SDK state.
"""

import asyncio
import io
import logging
from typing import Any, ClassVar

import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils

from rentgate.config.settings import CloudinarySettings
from rentgate.domain.dtos import UploadedAssetDescriptor
from rentgate.domain.exceptions import (
    ExternalServiceError,
    NotFoundOnCdn,
    TransientCdnError,
    UploadFailure,
)
from rentgate.domain.ports import IImageStore
from rentgate.domain.value_objects import SizeVariant, VersionedUrl

logger = logging.getLogger(__name__)


class CloudinaryImageStore(IImageStore):
    """Upload/lookup/URL generation against one Cloudinary folder."""

    # width/height/quality/crop per size. "original" only lets Cloudinary pick quality.
    TRANSFORMATIONS: ClassVar[dict[SizeVariant, dict[str, Any]]] = {
        SizeVariant.THUMB: {
            "width": 300,
            "height": 200,
            "quality": 80,
            "crop": "fill",
            "gravity": "auto",
        },
        SizeVariant.MEDIUM: {
            "width": 800,
            "height": 600,
            "quality": 85,
            "crop": "fill",
            "gravity": "auto",
        },
        SizeVariant.LARGE: {
            "width": 1200,
            "height": 900,
            "quality": 90,
            "crop": "fill",
            "gravity": "auto",
        },
        SizeVariant.ORIGINAL: {"quality": "auto"},
    }

    def __init__(self, settings: CloudinarySettings) -> None:
        self.settings = settings
        self._auth = {
            "cloud_name": settings.cloud_name,
            "api_key": settings.api_key,
            "api_secret": settings.api_secret,
        }

    def public_id_for(self, base_name: str) -> str:
        folder = self.settings.folder.strip("/")
        return f"{folder}/{base_name}" if folder else base_name

    @staticmethod
    def _descriptor(result: dict[str, Any], fallback_public_id: str) -> UploadedAssetDescriptor:
        return UploadedAssetDescriptor(
            public_id=str(result.get("public_id") or fallback_public_id),
            version=str(result.get("version") or ""),
            width=int(result.get("width") or 0),
            height=int(result.get("height") or 0),
            format=str(result.get("format") or ""),
            bytes=int(result.get("bytes") or 0),
        )

    async def upload_original(
        self, payload: bytes, base_name: str
    ) -> UploadedAssetDescriptor:
        """Upload the original bytes once; sizes are rendered on read.

        Raises:
            UploadFailure: Cloudinary rejected the upload or returned no version
        """
        if not payload:
            raise UploadFailure(f"Refusing to upload empty payload for {base_name}")

        public_id = self.public_id_for(base_name)
        logger.info(
            "Uploading %s to Cloudinary (%d bytes)",
            public_id,
            len(payload),
            extra={"public_id": public_id, "bytes": len(payload)},
        )
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                # file-like, sent as multipart
                io.BytesIO(payload),
                public_id=public_id,
                resource_type="image",
                overwrite=True,
                invalidate=True,
                **self._auth,
            )
        except Exception as e:
            logger.error("Cloudinary upload failed for %s: %s", public_id, e)
            raise UploadFailure(
                f"Failed to upload image {base_name} to Cloudinary", details=str(e)
            ) from e

        try:
            descriptor = self._descriptor(result, public_id)
        except ValueError as e:
            raise UploadFailure(
                f"Cloudinary returned an unusable result for {base_name}", details=str(e)
            ) from e

        logger.info(
            "Uploaded %s (version %s, %dx%d)",
            descriptor.public_id,
            descriptor.version,
            descriptor.width,
            descriptor.height,
        )
        return descriptor

    # Yo, the distinction below is the whole point of this method: NotFound means "go fetch
    # from Rentman", anything else (auth hiccup, rate limit, network) is TransientCdnError and
    # the resolver treats it as a miss too - but we want to SEE those in the logs separately.
    async def existing(self, base_name: str) -> UploadedAssetDescriptor:
        """Look up the current asset and its version.

        Raises:
            NotFoundOnCdn: Cloudinary has no such asset
            TransientCdnError: the lookup failed for any other reason
        """
        public_id = self.public_id_for(base_name)
        try:
            result = await asyncio.to_thread(
                cloudinary.api.resource, public_id, **self._auth
            )
        except cloudinary.exceptions.NotFound as e:
            raise NotFoundOnCdn(public_id) from e
        except Exception as e:
            raise TransientCdnError(
                f"Cloudinary lookup failed for {public_id}", details=str(e)
            ) from e

        try:
            return self._descriptor(result, public_id)
        except ValueError as e:
            raise TransientCdnError(
                f"Cloudinary returned an unusable resource for {public_id}",
                details=str(e),
            ) from e

    def transform_url(
        self, public_id: str, size: SizeVariant, version: str
    ) -> VersionedUrl:
        """Build the rendition URL. Pure string building, no network."""
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            version=version,
            secure=self.settings.secure,
            cloud_name=self.settings.cloud_name,
            **self.TRANSFORMATIONS[size],
        )
        return VersionedUrl(url, version)

    async def delete(self, base_name: str) -> bool:
        """Destroy the asset and purge its CDN renditions.

        Returns:
            True if deleted, False if Cloudinary had no such asset

        Raises:
            ExternalServiceError: the destroy call failed
        """
        public_id = self.public_id_for(base_name)
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy, public_id, invalidate=True, **self._auth
            )
        except Exception as e:
            raise ExternalServiceError(
                f"Failed to delete {public_id} from Cloudinary",
                error_code="CDN_DELETE_FAILED",
                details=str(e),
            ) from e

        deleted = result.get("result") == "ok"
        logger.info("Cloudinary destroy %s: %s", public_id, result.get("result"))
        return deleted
