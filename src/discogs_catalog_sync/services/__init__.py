"""Service layer over the local catalog."""

from .catalog import CatalogService

__all__ = ["CatalogService"]
