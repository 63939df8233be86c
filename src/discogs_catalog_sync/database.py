"""SQLite database operations for the release catalog and user lists."""

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from .config import get_config
from .exceptions import ConflictError
from .models import ListMembership, ListType, Release, SortOrder

logger = logging.getLogger(__name__)

MEMBERSHIP_TABLES: dict[ListType, str] = {
    ListType.COLLECTION: "user_collections",
    ListType.WANTLIST: "user_wantlists",
    ListType.SUGGESTIONS: "user_suggestions",
}

RELEASE_JSON_COLUMNS = ("artists", "labels", "formats", "genres", "styles")

RELEASE_COLUMNS = (
    "discogs_id",
    "title",
    "year",
    "thumb_url",
    "cover_image_url",
    *RELEASE_JSON_COLUMNS,
    "primary_artist",
    "all_artists",
    "primary_genre",
    "primary_style",
    "primary_format",
    "vinyl_color",
    "catalog_number",
    "record_label",
)

MEMBERSHIP_COLUMNS = (
    "user_id",
    "release_id",
    "discogs_instance_id",
    "folder_id",
    "rating",
    "notes",
    "date_added",
    "title",
    "primary_artist",
    "all_artists",
    "year",
    "primary_genre",
    "primary_format",
    "vinyl_color",
)

MEMBERSHIP_SORT_COLUMNS = frozenset(
    {"date_added", "title", "primary_artist", "year", "rating", "primary_genre", "primary_format"}
)
RELEASE_SORT_COLUMNS = frozenset({"title", "primary_artist", "year", "primary_genre", "created_at"})


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class Database:
    """Async SQLite database for releases and list memberships."""

    def __init__(self, db_path: str | None = None, journal_mode: str | None = None):
        self._config_db_path = db_path
        self._config_journal_mode = journal_mode
        self._db: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> str:
        """Get database path from config or override."""
        if self._config_db_path:
            return str(self._config_db_path)
        return get_config().database.path

    @property
    def journal_mode(self) -> str:
        """Get journal mode from config or override."""
        if self._config_journal_mode:
            return self._config_journal_mode.upper()
        try:
            return get_config().database.journal_mode.upper()
        except RuntimeError:
            return "WAL"  # Default if config not loaded (tests)

    @property
    def connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> None:
        """Connect to the database and create tables."""
        db_path = Path(self.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to database: %s (journal_mode=%s)", db_path, self.journal_mode)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row

        if self.journal_mode in ("WAL", "DELETE", "TRUNCATE", "MEMORY", "OFF"):
            await self._db.execute(f"PRAGMA journal_mode={self.journal_mode}")
        await self._db.execute("PRAGMA foreign_keys=ON")

        await self._create_tables()
        logger.info("Database connected successfully")

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            logger.info("Closing database connection")
            await self._db.close()
            self._db = None

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        assert self._db is not None

        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS releases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                discogs_id INTEGER NOT NULL UNIQUE,
                title TEXT NOT NULL,
                year INTEGER,
                thumb_url TEXT,
                cover_image_url TEXT,
                artists TEXT NOT NULL DEFAULT '[]',
                labels TEXT NOT NULL DEFAULT '[]',
                formats TEXT NOT NULL DEFAULT '[]',
                genres TEXT NOT NULL DEFAULT '[]',
                styles TEXT NOT NULL DEFAULT '[]',
                primary_artist TEXT,
                all_artists TEXT,
                primary_genre TEXT,
                primary_style TEXT,
                primary_format TEXT,
                vinyl_color TEXT,
                catalog_number TEXT,
                record_label TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

        for column in ("primary_artist", "year", "title"):
            await self._db.execute(f"CREATE INDEX IF NOT EXISTS idx_releases_{column} ON releases({column})")

        # The three list tables share one shape; collection-only columns stay NULL elsewhere
        for table in MEMBERSHIP_TABLES.values():
            await self._db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    release_id INTEGER NOT NULL REFERENCES releases(id),
                    discogs_instance_id INTEGER,
                    folder_id INTEGER,
                    rating INTEGER,
                    notes TEXT,
                    date_added TIMESTAMP,
                    title TEXT,
                    primary_artist TEXT,
                    all_artists TEXT,
                    year INTEGER,
                    primary_genre TEXT,
                    primary_format TEXT,
                    vinyl_color TEXT,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    UNIQUE(user_id, release_id)
                )
            """
            )
            for column in ("date_added", "primary_artist", "title", "year"):
                await self._db.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_{column} ON {table}(user_id, {column})"
                )

        await self._db.commit()

    # ========== Row mapping ==========

    @staticmethod
    def _row_to_release(row: aiosqlite.Row) -> Release:
        data = dict(row)
        for column in RELEASE_JSON_COLUMNS:
            data[column] = json.loads(data[column]) if data[column] else []
        return Release.model_validate(data)

    @staticmethod
    def _row_to_membership(list_type: ListType, row: aiosqlite.Row) -> ListMembership:
        return ListMembership.model_validate({**dict(row), "list_type": list_type})

    @staticmethod
    def _release_values(release: Release) -> dict[str, Any]:
        values = release.model_dump(include=set(RELEASE_COLUMNS))
        for column in RELEASE_JSON_COLUMNS:
            values[column] = json.dumps(values[column])
        return values

    # ========== Releases ==========

    async def get_release(self, release_id: int) -> Release | None:
        """Get a release by local id."""
        assert self._db is not None

        async with self._db.execute("SELECT * FROM releases WHERE id = ?", (release_id,)) as cursor:
            row = await cursor.fetchone()
            return self._row_to_release(row) if row else None

    async def get_release_by_discogs_id(self, discogs_id: int) -> Release | None:
        """Get a release by its Discogs id."""
        assert self._db is not None

        async with self._db.execute("SELECT * FROM releases WHERE discogs_id = ?", (discogs_id,)) as cursor:
            row = await cursor.fetchone()
            if row:
                logger.debug("Found release for discogs_id=%d -> id=%d", discogs_id, row["id"])
                return self._row_to_release(row)
            return None

    async def get_releases_by_ids(self, release_ids: Iterable[int]) -> dict[int, Release]:
        """Get several releases at once, keyed by local id."""
        assert self._db is not None

        ids = list(set(release_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        releases: dict[int, Release] = {}
        async with self._db.execute(f"SELECT * FROM releases WHERE id IN ({placeholders})", ids) as cursor:
            async for row in cursor:
                releases[row["id"]] = self._row_to_release(row)
        return releases

    async def insert_release(self, release: Release) -> Release:
        """Insert a new release row."""
        assert self._db is not None

        values = self._release_values(release)
        now = _now()
        columns = [*values.keys(), "created_at", "updated_at"]
        cursor = await self._db.execute(
            f"INSERT INTO releases ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            (*values.values(), now, now),
        )
        await self._db.commit()
        release_id = cursor.lastrowid
        logger.debug("Inserted release discogs_id=%d -> id=%s", release.discogs_id, release_id)

        created = await self.get_release(release_id or 0)
        assert created is not None
        return created

    async def update_release(self, release_id: int, release: Release) -> Release:
        """Overwrite every mutable field of an existing release.

        ``discogs_id``, ``id`` and ``created_at`` are left untouched.
        """
        assert self._db is not None

        values = self._release_values(release)
        values.pop("discogs_id")
        assignments = ", ".join(f"{column} = ?" for column in values)
        await self._db.execute(
            f"UPDATE releases SET {assignments}, updated_at = ? WHERE id = ?",
            (*values.values(), _now(), release_id),
        )
        await self._db.commit()
        logger.debug("Updated release id=%d", release_id)

        updated = await self.get_release(release_id)
        assert updated is not None
        return updated

    async def list_releases(
        self,
        limit: int = 50,
        offset: int = 0,
        sort_column: str = "created_at",
        order: SortOrder = SortOrder.DESC,
    ) -> tuple[list[Release], int]:
        """Page through the catalog."""
        assert self._db is not None

        if sort_column not in RELEASE_SORT_COLUMNS:
            raise ValueError(f"Cannot sort releases by {sort_column!r}")

        releases: list[Release] = []
        async with self._db.execute(
            f"SELECT * FROM releases ORDER BY {sort_column} {order.value}, id {order.value} LIMIT ? OFFSET ?",
            (limit, offset),
        ) as cursor:
            async for row in cursor:
                releases.append(self._row_to_release(row))

        return releases, await self.get_release_count()

    async def get_release_count(self) -> int:
        assert self._db is not None

        async with self._db.execute("SELECT COUNT(*) as count FROM releases") as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    # ========== List memberships ==========

    async def get_membership(self, list_type: ListType, user_id: str, release_id: int) -> ListMembership | None:
        """Find a user's membership row for a release."""
        assert self._db is not None

        table = MEMBERSHIP_TABLES[list_type]
        async with self._db.execute(
            f"SELECT * FROM {table} WHERE user_id = ? AND release_id = ?",
            (user_id, release_id),
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_membership(list_type, row) if row else None

    async def insert_membership(self, membership: ListMembership) -> ListMembership:
        """Insert a membership row. Raises ConflictError if (user, release) already exists."""
        assert self._db is not None

        table = MEMBERSHIP_TABLES[membership.list_type]
        values = {column: _to_db(getattr(membership, column)) for column in MEMBERSHIP_COLUMNS}
        now = _now()
        columns = [*values.keys(), "created_at", "updated_at"]
        # Duplicates are skipped in-statement; the shared connection is never rolled back
        cursor = await self._db.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "
            "ON CONFLICT(user_id, release_id) DO NOTHING",
            (*values.values(), now, now),
        )
        if cursor.rowcount == 0:
            raise ConflictError(
                f"Release {membership.release_id} already in {membership.list_type.value} "
                f"for user {membership.user_id}"
            )
        await self._db.commit()
        logger.debug(
            "[%s] Inserted membership user=%s release=%d",
            membership.list_type.value,
            membership.user_id,
            membership.release_id,
        )

        created = await self.get_membership(membership.list_type, membership.user_id, membership.release_id)
        assert created is not None
        return created

    async def update_membership(
        self,
        list_type: ListType,
        user_id: str,
        release_id: int,
        updates: Mapping[str, Any],
    ) -> ListMembership | None:
        """Update selected columns of a membership row.

        Keys outside the membership columns are rejected. Returns the updated
        row, or None if it does not exist.
        """
        assert self._db is not None

        unknown = set(updates) - set(MEMBERSHIP_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown membership columns: {sorted(unknown)}")

        table = MEMBERSHIP_TABLES[list_type]
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            await self._db.execute(
                f"UPDATE {table} SET {assignments}, updated_at = ? WHERE user_id = ? AND release_id = ?",
                (*(_to_db(v) for v in updates.values()), _now(), user_id, release_id),
            )
            await self._db.commit()

        return await self.get_membership(list_type, user_id, release_id)

    async def delete_membership(self, list_type: ListType, user_id: str, release_id: int) -> bool:
        """Delete a membership row. Returns True if deleted."""
        assert self._db is not None

        table = MEMBERSHIP_TABLES[list_type]
        cursor = await self._db.execute(
            f"DELETE FROM {table} WHERE user_id = ? AND release_id = ?",
            (user_id, release_id),
        )
        await self._db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("[%s] Deleted membership user=%s release=%d", list_type.value, user_id, release_id)
        return deleted

    async def list_memberships(
        self,
        list_type: ListType,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        sort_column: str = "date_added",
        order: SortOrder = SortOrder.DESC,
    ) -> tuple[list[ListMembership], int]:
        """Page through a user's list, sorted on the denormalized columns.

        Each returned row has its release attached.
        """
        assert self._db is not None

        if sort_column not in MEMBERSHIP_SORT_COLUMNS:
            raise ValueError(f"Cannot sort {list_type.value} by {sort_column!r}")

        table = MEMBERSHIP_TABLES[list_type]
        items: list[ListMembership] = []
        async with self._db.execute(
            f"""
            SELECT * FROM {table}
            WHERE user_id = ?
            ORDER BY {sort_column} {order.value}, id {order.value}
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        ) as cursor:
            async for row in cursor:
                items.append(self._row_to_membership(list_type, row))

        releases = await self.get_releases_by_ids(item.release_id for item in items)
        for item in items:
            item.release = releases.get(item.release_id)

        return items, await self.get_membership_count(list_type, user_id)

    async def get_membership_count(self, list_type: ListType, user_id: str) -> int:
        assert self._db is not None

        table = MEMBERSHIP_TABLES[list_type]
        async with self._db.execute(f"SELECT COUNT(*) as count FROM {table} WHERE user_id = ?", (user_id,)) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def get_membership_stats(self, list_type: ListType, user_id: str) -> dict[str, Any]:
        """Item count per list; the collection also reports rating stats."""
        assert self._db is not None

        table = MEMBERSHIP_TABLES[list_type]
        if list_type is not ListType.COLLECTION:
            return {"total_items": await self.get_membership_count(list_type, user_id)}

        async with self._db.execute(
            f"""
            SELECT COUNT(*) as total,
                   SUM(CASE WHEN rating > 0 THEN 1 ELSE 0 END) as rated,
                   AVG(CASE WHEN rating > 0 THEN rating END) as average
            FROM {table}
            WHERE user_id = ?
            """,
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()

        average = row["average"] if row and row["average"] is not None else 0.0
        return {
            "total_items": row["total"] if row else 0,
            "rated_items": (row["rated"] or 0) if row else 0,
            "average_rating": round(average, 1),
        }

    def get_database_size(self) -> int:
        """Get database file size in bytes."""
        try:
            db_path = Path(self.db_path)
            if db_path.exists():
                total_size = db_path.stat().st_size
                for suffix in (".db-wal", ".db-shm"):
                    extra = db_path.with_suffix(suffix)
                    if extra.exists():
                        total_size += extra.stat().st_size
                return total_size
        except OSError:
            pass
        return 0


# Global database instance
_db: Database | None = None


async def get_db() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
        await _db.connect()
    return _db


async def close_db() -> None:
    """Close the global database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None
