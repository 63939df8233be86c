"""Sync module."""

from .engine import SyncEngine
from .scheduler import SyncScheduler

__all__ = ["SyncEngine", "SyncScheduler"]
