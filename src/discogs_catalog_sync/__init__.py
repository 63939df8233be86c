"""Discogs collection, wantlist and suggestions catalog with scheduled sync."""

__version__ = "0.1.0"
