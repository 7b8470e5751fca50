"""Upstream API integrations."""

from .rentman_client import RentmanClient

__all__ = ["RentmanClient"]
