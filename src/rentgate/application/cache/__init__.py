"""Caching for resolved image URLs and upstream responses."""

from .base_cache import BaseCache, CacheEntry, InMemoryCache
from .cache_keys import CacheKeys

__all__ = ["BaseCache", "CacheEntry", "CacheKeys", "InMemoryCache"]
