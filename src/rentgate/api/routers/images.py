"""Image endpoints: CDN redirect, direct upload, deletion, cache invalidation."""

import base64
import binascii
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from rentgate.api.dependencies import get_image_service
from rentgate.api.schemas import ImageUploadRequest, success_envelope
from rentgate.application.services.images import ImageResolutionService
from rentgate.domain.exceptions import EntityNotFoundException, ValidationError
from rentgate.domain.value_objects import ImageIdentifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


def _identify(filename: str) -> ImageIdentifier:
    try:
        return ImageIdentifier.parse(filename)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _decode_base64(data: str) -> bytes:
    """Decode client-supplied base64, tolerating a data: URI prefix.

    Raises:
        ValidationError: not valid base64 or empty after decoding
    """
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        payload = base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid base64 image data") from e
    if not payload:
        raise ValidationError("Invalid base64 image data")
    return payload


# Hey future me, this is THE endpoint browsers hit for every <img>. It never proxies bytes: it
# answers 302 with a versioned Cloudinary URL and the browser fetches from the CDN. A suffix in
# the filename (_thumb) beats ?size=, unknown sizes fall back to medium.
@router.get(
    "/{filename}",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
)
async def get_image(
    filename: str,
    size: str | None = Query(default=None, description="thumb, medium, large or original"),
    image_service: ImageResolutionService = Depends(get_image_service),
) -> RedirectResponse:
    """Redirect to the CDN rendition of an image, uploading it first if needed."""
    _identify(filename)
    url = await image_service.resolve(filename, size)
    return RedirectResponse(url=str(url), status_code=status.HTTP_302_FOUND)


@router.post("/upload")
async def upload_image(
    body: ImageUploadRequest,
    image_service: ImageResolutionService = Depends(get_image_service),
) -> dict[str, Any]:
    """Upload caller-supplied image bytes and return URLs for every size.

    Returns 400 when base64Data or filename is missing or the data isn't base64.
    """
    if not body.base64_data or not body.filename:
        raise ValidationError("Missing required fields: base64Data and filename")

    image = _identify(body.filename)
    payload = _decode_base64(body.base64_data)

    urls = await image_service.upload(payload, body.filename)
    logger.info(
        "Direct upload of %s finished (%d bytes)",
        image.base_name,
        len(payload),
        extra={"base_name": image.base_name, "bytes": len(payload)},
    )
    return success_envelope(
        {size.value: str(url) for size, url in urls.items()},
        "Image uploaded successfully",
    )


@router.delete("/{filename}/cache")
async def clear_image_cache(
    filename: str,
    image_service: ImageResolutionService = Depends(get_image_service),
) -> dict[str, Any]:
    """Drop every cached URL of an image so the next request re-resolves it."""
    image = _identify(filename)
    cleared = await image_service.invalidate(filename)
    return success_envelope(
        {"base_name": image.base_name, "cleared": cleared},
        f"Cleared {cleared} cached URL(s) for {image.base_name}",
    )


# Yo, this and /{filename}/cache never collide: {filename} never matches a slash.
@router.delete("/{filename}")
async def delete_image(
    filename: str,
    image_service: ImageResolutionService = Depends(get_image_service),
) -> dict[str, Any]:
    """Delete an image from the CDN along with its cached URLs.

    Returns 404 when the CDN has no asset for the image.
    """
    image = _identify(filename)
    deleted, cleared = await image_service.delete(filename)
    if not deleted:
        raise EntityNotFoundException("CDN asset", image.base_name)
    return success_envelope(
        {"base_name": image.base_name, "deleted": deleted, "cleared": cleared},
        f"Deleted {image.base_name} from CDN",
    )
