"""CDN image store adapters."""

from .cloudinary_store import CloudinaryImageStore

__all__ = ["CloudinaryImageStore"]
