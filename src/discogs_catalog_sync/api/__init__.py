"""API module."""

from .collection import router as collection_router
from .discogs import router as discogs_router
from .errors import register_exception_handlers
from .health import router as health_router
from .releases import router as releases_router

__all__ = [
    "collection_router",
    "discogs_router",
    "health_router",
    "releases_router",
    "register_exception_handlers",
]
