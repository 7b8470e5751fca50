"""Application layer: cache and services."""
