"""Image resolution: cache, CDN lookup and single-flight upload."""

from .image_resolution_service import ImageResolutionService, ResolutionStats, pick_url
from .inflight import InFlightUploads, UrlMap

__all__ = [
    "ImageResolutionService",
    "InFlightUploads",
    "ResolutionStats",
    "UrlMap",
    "pick_url",
]
