"""Per-list behavior for the three reconciled list types.

The reconciler is written once; what differs between collection, wantlist
and suggestions (list-specific columns, accepted sort fields) lives here.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..models import ListMembership, ListType, Release, RemoteListItem, SortOrder
from .normalize import UNSET, copy_release_data_for_sorting

_COMMON_SORT_ALIASES: dict[str, str] = {
    "added": "date_added",
    "date_added": "date_added",
    "dateAdded": "date_added",
    "title": "title",
    "artist": "primary_artist",
    "primary_artist": "primary_artist",
    "primaryArtist": "primary_artist",
    "year": "year",
    "genre": "primary_genre",
    "primary_genre": "primary_genre",
    "primaryGenre": "primary_genre",
    "format": "primary_format",
    "primary_format": "primary_format",
    "primaryFormat": "primary_format",
}

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0


def map_sort_order(sort_order: str | None) -> SortOrder:
    """``asc``/``ascending`` in any case sort ascending; anything else descending."""
    if sort_order and sort_order.lower() in ("asc", "ascending"):
        return SortOrder.ASC
    return SortOrder.DESC


def _sortable_columns(release: Release) -> dict[str, Any]:
    return {k: v for k, v in copy_release_data_for_sorting(release).items() if v is not UNSET}


@dataclass(frozen=True)
class ListPolicy:
    """Describes one list type for the reconciler and the catalog service."""

    list_type: ListType
    collection_fields: bool = False
    sort_aliases: Mapping[str, str] = field(default_factory=lambda: dict(_COMMON_SORT_ALIASES))
    default_sort: str = "date_added"

    @property
    def label(self) -> str:
        return self.list_type.value

    def map_sort_field(self, sort_by: str | None) -> str:
        """Resolve a user-supplied sort key to a column, falling back to the default."""
        return self.sort_aliases.get(sort_by or "", self.default_sort)

    def new_membership(self, user_id: str, release: Release, item: RemoteListItem) -> ListMembership:
        """Build the row inserted the first time an item is seen for this user."""
        assert release.id is not None
        membership = ListMembership(
            list_type=self.list_type,
            user_id=user_id,
            release_id=release.id,
            notes=item.notes_text or "",
            date_added=item.date_added or datetime.now(UTC),
            **_sortable_columns(release),
        )
        if self.collection_fields:
            membership.discogs_instance_id = item.instance_id
            membership.folder_id = item.folder_id or 0
            membership.rating = item.rating
        return membership

    def refresh_updates(self, release: Release, item: RemoteListItem) -> dict[str, Any]:
        """Columns rewritten on an existing row. ``date_added`` is never touched."""
        updates: dict[str, Any] = {"notes": item.notes_text or "", **_sortable_columns(release)}
        if self.collection_fields:
            updates["rating"] = item.rating
        return updates

    def local_membership(
        self,
        user_id: str,
        release: Release,
        rating: int | None = None,
        notes: str | None = None,
    ) -> ListMembership:
        """Build a row for a direct local add (not sourced from Discogs)."""
        assert release.id is not None
        membership = ListMembership(
            list_type=self.list_type,
            user_id=user_id,
            release_id=release.id,
            notes=notes,
            date_added=datetime.now(UTC),
            **_sortable_columns(release),
        )
        if self.collection_fields:
            membership.rating = rating or 0
            membership.folder_id = 0
        return membership


COLLECTION_POLICY = ListPolicy(
    list_type=ListType.COLLECTION,
    collection_fields=True,
    sort_aliases={**_COMMON_SORT_ALIASES, "rating": "rating"},
)
WANTLIST_POLICY = ListPolicy(list_type=ListType.WANTLIST)
SUGGESTIONS_POLICY = ListPolicy(list_type=ListType.SUGGESTIONS)

POLICIES: dict[ListType, ListPolicy] = {
    ListType.COLLECTION: COLLECTION_POLICY,
    ListType.WANTLIST: WANTLIST_POLICY,
    ListType.SUGGESTIONS: SUGGESTIONS_POLICY,
}


def get_policy(list_type: ListType) -> ListPolicy:
    return POLICIES[list_type]
