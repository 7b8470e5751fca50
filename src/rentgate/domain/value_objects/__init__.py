"""Domain value objects."""

from .image_ref import ImageIdentifier, SizeVariant, VersionedUrl

__all__ = ["ImageIdentifier", "SizeVariant", "VersionedUrl"]
