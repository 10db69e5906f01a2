"""Parra Connect rate limiting."""

__version__ = "0.1.0"
