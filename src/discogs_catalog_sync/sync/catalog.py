"""Find-or-create canonical releases from Discogs payloads."""

import logging

import aiosqlite

from ..database import RELEASE_COLUMNS, Database
from ..exceptions import PersistenceError
from ..models import BasicInformation, Release
from .normalize import extract_sortable_fields

logger = logging.getLogger(__name__)

# Everything except the Discogs id is rewritten on each sighting
MUTABLE_RELEASE_FIELDS = frozenset(RELEASE_COLUMNS) - {"discogs_id"}


def build_release(info: BasicInformation) -> Release:
    """Raw payload fields plus derived sortable fields, not yet persisted."""
    return Release(
        discogs_id=info.id,
        title=info.title,
        year=info.year,
        thumb_url=info.thumb,
        cover_image_url=info.cover_image,
        artists=info.artists,
        labels=info.labels,
        formats=info.formats,
        genres=info.genres,
        styles=info.styles,
        **extract_sortable_fields(info).model_dump(),
    )


class ReleaseCatalog:
    """Catalog upsert keyed by Discogs release id."""

    def __init__(self, db: Database):
        self.db = db

    async def upsert(self, info: BasicInformation) -> Release:
        """Create the release on first sight, otherwise refresh its mutable fields.

        Calling this again with identical input neither duplicates the row
        nor bumps ``updated_at``. Storage failures raise PersistenceError.
        """
        candidate = build_release(info)
        try:
            existing = await self.db.get_release_by_discogs_id(info.id)
            if existing is None:
                release = await self.db.insert_release(candidate)
                logger.debug("Created release %d (%s)", info.id, info.title)
                return release

            assert existing.id is not None
            if existing.model_dump(include=MUTABLE_RELEASE_FIELDS) == candidate.model_dump(
                include=MUTABLE_RELEASE_FIELDS
            ):
                return existing

            release = await self.db.update_release(existing.id, candidate)
            logger.debug("Updated release %d (%s)", info.id, info.title)
            return release
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to upsert release {info.id}: {e}") from e
