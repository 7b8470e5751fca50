"""Configuration module for Rentgate."""

from .settings import (
    APISettings,
    CacheSettings,
    CloudinarySettings,
    ImageSettings,
    ObservabilitySettings,
    RentmanSettings,
    Settings,
    get_settings,
)

__all__ = [
    "APISettings",
    "CacheSettings",
    "CloudinarySettings",
    "ImageSettings",
    "ObservabilitySettings",
    "RentmanSettings",
    "Settings",
    "get_settings",
]
