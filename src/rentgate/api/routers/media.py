"""Media endpoints: property media lists and single files."""

from typing import Any

from fastapi import APIRouter, Depends

from rentgate.api.dependencies import get_media_service
from rentgate.api.schemas import success_envelope
from rentgate.application.services.media_service import MediaService

router = APIRouter(prefix="/media", tags=["media"])


# specific route first
@router.get("/file/{filename}")
async def get_media_file(
    filename: str,
    media_service: MediaService = Depends(get_media_service),
) -> dict[str, Any]:
    """Single media file. 404 if upstream doesn't know it."""
    item = await media_service.get_file(filename)
    return success_envelope(item.to_dict(), "Media file found")


@router.get("/{property_id}")
async def get_property_media(
    property_id: str,
    media_service: MediaService = Depends(get_media_service),
) -> dict[str, Any]:
    """All media of a property, sorted by display order. 404 if none."""
    items = await media_service.list_for_property(property_id)
    return success_envelope(
        [item.to_dict() for item in items],
        f"Found {len(items)} media files for property {property_id}",
    )
