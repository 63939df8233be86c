"""Discogs API module."""

from .client import DiscogsClient

__all__ = ["DiscogsClient"]
