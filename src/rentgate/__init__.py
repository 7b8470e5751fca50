"""Rentgate - REST gateway in front of the Rentman property API."""

__version__ = "1.0.0"
