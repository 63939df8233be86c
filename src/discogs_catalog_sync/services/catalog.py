"""Read and write operations on the local catalog for the API layer."""

import logging
from typing import Any

from ..database import get_db
from ..exceptions import ConflictError, NotFoundError
from ..models import ListMembership, ListType, Release
from ..sync.policies import DEFAULT_LIMIT, DEFAULT_OFFSET, get_policy, map_sort_order

logger = logging.getLogger(__name__)

_RELEASE_SORT_ALIASES = {
    "title": "title",
    "artist": "primary_artist",
    "primary_artist": "primary_artist",
    "primaryArtist": "primary_artist",
    "year": "year",
    "genre": "primary_genre",
    "primary_genre": "primary_genre",
    "primaryGenre": "primary_genre",
    "created": "created_at",
    "created_at": "created_at",
    "createdAt": "created_at",
}


class CatalogService:
    """List, add and remove list entries; browse releases."""

    async def list_items(
        self,
        list_type: ListType,
        user_id: str,
        limit: int | None = None,
        offset: int | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> dict[str, Any]:
        """One page of a user's list, sorted on a denormalized column."""
        policy = get_policy(list_type)
        sort_column = policy.map_sort_field(sort_by)
        order = map_sort_order(sort_order)
        limit = limit or DEFAULT_LIMIT
        offset = offset or DEFAULT_OFFSET

        logger.info("[%s] Listing for user %s - sort: %s %s", policy.label, user_id, sort_column, order.value)

        db = await get_db()
        items, total = await db.list_memberships(list_type, user_id, limit, offset, sort_column, order)
        return {
            "data": items,
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(items) < total,
            "sort_by": sort_column,
            "sort_order": order.value,
        }

    async def add_item(
        self,
        list_type: ListType,
        user_id: str,
        release_id: int,
        rating: int | None = None,
        notes: str | None = None,
    ) -> ListMembership:
        """Add a catalog release to a user's list locally.

        Raises NotFoundError for an unknown release, ConflictError if already listed.
        """
        policy = get_policy(list_type)
        db = await get_db()

        release = await db.get_release(release_id)
        if release is None:
            raise NotFoundError(f"Release {release_id} not found")

        if await db.get_membership(list_type, user_id, release_id) is not None:
            raise ConflictError(f"Release already in {policy.label}")

        logger.info("[%s] Adding release %d for user %s", policy.label, release_id, user_id)
        membership = await db.insert_membership(policy.local_membership(user_id, release, rating=rating, notes=notes))
        membership.release = release
        return membership

    async def remove_item(self, list_type: ListType, user_id: str, release_id: int) -> dict[str, Any]:
        """Remove a release from a user's list. Raises NotFoundError if absent."""
        policy = get_policy(list_type)
        db = await get_db()

        if not await db.delete_membership(list_type, user_id, release_id):
            raise NotFoundError(f"Release not found in {policy.label}")
        return {"message": f"Release removed from {policy.label}", "release_id": release_id}

    async def get_user_stats(self, user_id: str) -> dict[str, Any]:
        """Per-list stats plus totals."""
        db = await get_db()
        stats = {list_type.value: await db.get_membership_stats(list_type, user_id) for list_type in ListType}
        summary = {f"{name}_items": value["total_items"] for name, value in stats.items()}
        summary["total_items"] = sum(value["total_items"] for value in stats.values())
        return {**stats, "summary": summary}

    # ========== Releases ==========

    async def list_releases(
        self,
        limit: int | None = None,
        offset: int | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> dict[str, Any]:
        sort_column = _RELEASE_SORT_ALIASES.get(sort_by or "", "created_at")
        order = map_sort_order(sort_order)
        limit = limit or DEFAULT_LIMIT
        offset = offset or DEFAULT_OFFSET

        db = await get_db()
        releases, total = await db.list_releases(limit, offset, sort_column, order)
        return {
            "data": releases,
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(releases) < total,
            "sort_by": sort_column,
            "sort_order": order.value,
        }

    async def get_release(self, release_id: int) -> Release:
        db = await get_db()
        release = await db.get_release(release_id)
        if release is None:
            raise NotFoundError(f"Release {release_id} not found")
        return release
