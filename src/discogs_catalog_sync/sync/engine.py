"""Sync engine reconciling Discogs lists into the local catalog."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from ..config import Config, get_config
from ..database import Database, get_db
from ..discogs import DiscogsClient
from ..exceptions import (
    AlreadyExists,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ReconcileAllError,
    RemoteConfigError,
    RemoteError,
)
from ..models import ListMembership, ListType, RemoteListItem, SyncRunResult
from .catalog import ReleaseCatalog
from .policies import ListPolicy, get_policy

logger = logging.getLogger(__name__)


def _describe_entry(entry: Any) -> tuple[Any, Any]:
    """Best-effort release id and title of a raw list entry, for log lines."""
    if not isinstance(entry, dict):
        return None, None
    info = entry.get("basic_information")
    if not isinstance(info, dict):
        return entry.get("id"), None
    return info.get("id", entry.get("id")), info.get("title")


class SyncEngine:
    """Engine for reconciling Discogs lists into the local store.

    Each list type runs the same pass:
    1. Fetch every remote page (a failure here aborts the pass)
    2. For each entry, in page order: validate it, upsert the release, then
       insert or refresh the user's membership row
    3. Report synced / errors / total

    Passes only add and refresh rows. A membership whose item disappeared
    from Discogs stays until it is removed locally.
    """

    def __init__(self, config: Config | None = None, client: DiscogsClient | None = None):
        self.config = config or get_config()
        self.client = client or DiscogsClient(self.config.discogs)

    async def close(self) -> None:
        await self.client.close()

    def resolve_user(self, user_id: str | None = None) -> str:
        """Explicit user id, or the configured default user."""
        resolved = user_id or self.config.default_user_id
        if not resolved:
            raise RemoteConfigError("No user id given and no Discogs username configured")
        return resolved

    # ========== Reconciliation ==========

    async def reconcile(self, list_type: ListType, user_id: str | None = None) -> SyncRunResult:
        """Reconcile one list type for a user.

        Raises the Remote* error if the remote list cannot be fetched. Per-item
        failures are logged and counted, never raised.
        """
        policy = get_policy(list_type)
        user = self.resolve_user(user_id)
        logger.info("[%s] Starting sync for user: %s", policy.label, user)

        try:
            items = await self.client.fetch_all_pages(list_type)
        except RemoteError as e:
            logger.error("[%s] Sync failed, could not fetch remote list: %s", policy.label, e)
            raise

        db = await get_db()
        catalog = ReleaseCatalog(db)
        synced = 0
        errors = 0

        # Sequential on purpose: one writer per user/list
        for entry in items:
            try:
                item = RemoteListItem.model_validate(entry)
                await self._reconcile_item(db, catalog, policy, user, item)
                synced += 1
            except Exception as e:
                errors += 1
                release_id, title = _describe_entry(entry)
                logger.error("[%s] Error syncing release %s (%s): %s", policy.label, release_id, title, e)

        result = SyncRunResult(list_type=list_type, synced=synced, errors=errors, total=len(items))
        logger.info(
            "[%s] Sync completed: synced=%d errors=%d total=%d",
            policy.label,
            result.synced,
            result.errors,
            result.total,
        )
        return result

    async def _reconcile_item(
        self,
        db: Database,
        catalog: ReleaseCatalog,
        policy: ListPolicy,
        user_id: str,
        item: RemoteListItem,
    ) -> ListMembership:
        """Upsert one remote entry and its membership row."""
        release = await catalog.upsert(item.basic_information)
        assert release.id is not None

        try:
            existing = await db.get_membership(policy.list_type, user_id, release.id)
            if existing is None:
                try:
                    membership = await db.insert_membership(policy.new_membership(user_id, release, item))
                    logger.debug("[%s] Added: %s", policy.label, release.title)
                    return membership
                except ConflictError:
                    # Row appeared between lookup and insert (manual add); refresh it instead
                    logger.debug("[%s] Row appeared concurrently, updating: %s", policy.label, release.title)

            membership = await db.update_membership(
                policy.list_type,
                user_id,
                release.id,
                policy.refresh_updates(release, item),
            )
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to store {policy.label} entry for release {release.discogs_id}: {e}") from e

        if membership is None:
            raise PersistenceError(f"{policy.label} entry for release {release.discogs_id} vanished during update")
        logger.debug("[%s] Updated: %s", policy.label, release.title)
        return membership

    async def sync_user_collection(self, user_id: str | None = None) -> SyncRunResult:
        return await self.reconcile(ListType.COLLECTION, user_id)

    async def sync_user_wantlist(self, user_id: str | None = None) -> SyncRunResult:
        return await self.reconcile(ListType.WANTLIST, user_id)

    async def sync_user_suggestions(self, user_id: str | None = None) -> SyncRunResult:
        return await self.reconcile(ListType.SUGGESTIONS, user_id)

    async def reconcile_all(self, user_id: str | None = None) -> dict[str, SyncRunResult]:
        """Reconcile collection and wantlist concurrently.

        Both passes always run to completion. If either fails, ReconcileAllError
        is raised carrying the result of the one that finished.
        """
        user = self.resolve_user(user_id)
        logger.info("Starting full sync for user: %s", user)

        list_types = (ListType.COLLECTION, ListType.WANTLIST)
        outcomes = await asyncio.gather(
            *(self.reconcile(list_type, user) for list_type in list_types),
            return_exceptions=True,
        )

        results: dict[str, SyncRunResult] = {}
        errors: dict[str, BaseException] = {}
        for list_type, outcome in zip(list_types, outcomes, strict=True):
            if isinstance(outcome, SyncRunResult):
                results[list_type.value] = outcome
            elif isinstance(outcome, Exception):
                errors[list_type.value] = outcome
            else:
                raise outcome

        if errors:
            raise ReconcileAllError(results, errors) from next(iter(errors.values()))

        logger.info(
            "Full sync completed: collection %d/%d, wantlist %d/%d",
            results["collection"].synced,
            results["collection"].total,
            results["wantlist"].synced,
            results["wantlist"].total,
        )
        return results

    # ========== Remote folder side channel ==========

    async def add_to_remote_folder(self, release_id: int, folder_id: int | None = None) -> dict[str, Any]:
        """Add a Discogs release to a remote folder (suggestions by default).

        The local store is untouched; the next pass over that folder picks the
        release up. AlreadyExists propagates for callers to treat as benign.
        """
        response = await self.client.add_to_folder(release_id, folder_id)
        return {"instance_id": response.get("instance_id")}

    async def add_to_suggestions(
        self,
        user_id: str | None,
        discogs_release_id: int,
        notes: str | None = None,
    ) -> ListMembership:
        """Add a release to Discogs suggestions and return the resulting local row.

        ``notes`` are stored on the local row only; the next suggestions pass
        replaces them with the Discogs notes. Raises ConflictError if the
        release is already a local suggestion.
        """
        user = self.resolve_user(user_id)
        db = await get_db()

        release = await db.get_release_by_discogs_id(discogs_release_id)
        if release is not None:
            assert release.id is not None
            if await db.get_membership(ListType.SUGGESTIONS, user, release.id) is not None:
                raise ConflictError("Release already in suggestions")

        logger.info("Adding release %d to Discogs suggestions folder and syncing", discogs_release_id)
        try:
            await self.add_to_remote_folder(discogs_release_id)
        except AlreadyExists:
            logger.info("Release %d already in Discogs suggestions folder, syncing anyway", discogs_release_id)

        result = await self.sync_user_suggestions(user)
        logger.info("Suggestions sync completed: synced %d/%d suggestions", result.synced, result.total)

        release = await db.get_release_by_discogs_id(discogs_release_id)
        if release is None:
            raise NotFoundError(f"Release with Discogs ID {discogs_release_id} not found in database after sync")
        assert release.id is not None

        membership = await db.get_membership(ListType.SUGGESTIONS, user, release.id)
        if membership is None:
            raise NotFoundError(f"Suggestion for release {discogs_release_id} not found after sync")
        if notes:
            membership = await db.update_membership(ListType.SUGGESTIONS, user, release.id, {"notes": notes})
            assert membership is not None
        membership.release = release
        return membership

    # ========== Status ==========

    async def get_sync_status(self, user_id: str | None = None) -> dict[str, Any]:
        """Local list sizes for a user."""
        user = self.resolve_user(user_id)
        db = await get_db()

        collection = await db.get_membership_stats(ListType.COLLECTION, user)
        wantlist = await db.get_membership_stats(ListType.WANTLIST, user)
        suggestions = await db.get_membership_stats(ListType.SUGGESTIONS, user)

        return {
            "user_id": user,
            "checked_at": datetime.now(UTC).isoformat(),
            "collection": collection,
            "wantlist": wantlist,
            "suggestions": suggestions,
            "summary": {
                "total_synced_items": collection["total_items"] + wantlist["total_items"],
                "database_size_bytes": db.get_database_size(),
            },
        }
