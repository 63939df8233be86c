"""Error types raised by the sync engine and the catalog layer."""

from typing import Any


class CatalogSyncError(Exception):
    """Base class for all errors raised by this package."""


# ========== Remote (Discogs) ==========


class RemoteError(CatalogSyncError):
    """Base class for failures talking to Discogs."""


class RemoteConfigError(RemoteError):
    """Username or API token missing. Never retried."""


class RemoteUnavailable(RemoteError):
    """Transport-level failure: DNS, connection refused, timeout."""


class RemoteApiError(RemoteError):
    """Discogs answered with a non-success HTTP status."""

    def __init__(self, status: int, message: str | None = None):
        self.status = status
        super().__init__(message or f"Discogs API error: {status}")

    @property
    def retriable(self) -> bool:
        """True for statuses worth retrying on the next scheduled run."""
        return self.status == 429 or self.status >= 500


class AlreadyExists(RemoteError):
    """The release is already in the target Discogs folder (HTTP 403 on add)."""

    def __init__(self, release_id: int, folder_id: int):
        self.release_id = release_id
        self.folder_id = folder_id
        super().__init__(f"Release {release_id} already exists in folder {folder_id}")


# ========== Local store ==========


class PersistenceError(CatalogSyncError):
    """A local storage operation failed."""


class NotFoundError(CatalogSyncError):
    """Requested list membership or release does not exist."""


class ConflictError(CatalogSyncError):
    """List membership already exists."""


# ========== Run-level ==========


class ReconcileAllError(CatalogSyncError):
    """One or more list reconciliations of a concurrent run failed.

    Lists that completed keep their results in ``results``; the lists that
    failed are in ``errors``.
    """

    def __init__(self, results: dict[str, Any], errors: dict[str, BaseException]):
        self.results = results
        self.errors = errors
        failed = ", ".join(f"{name}: {exc}" for name, exc in errors.items())
        super().__init__(f"Reconciliation failed for {failed}")


class FullSyncFailed(CatalogSyncError):
    """A full sync run failed. ``result`` is the failure-shaped run report."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__(result.error or "Full sync failed")
