"""Tests for database operations."""

import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pytest

from discogs_catalog_sync.database import Database
from discogs_catalog_sync.exceptions import ConflictError
from discogs_catalog_sync.models import DiscogsArtist, DiscogsFormat, ListMembership, ListType, Release, SortOrder


@pytest.fixture
async def db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    database = Database(str(db_path))
    await database.connect()
    yield database
    await database.close()
    db_path.unlink(missing_ok=True)


async def add_release(db: Database, discogs_id: int, title: str, artist: str = "Artist", year: int = 2000) -> Release:
    return await db.insert_release(
        Release(
            discogs_id=discogs_id,
            title=title,
            year=year,
            artists=[DiscogsArtist(name=artist)],
            formats=[DiscogsFormat(name="Vinyl", descriptions=["LP"], text="Red")],
            genres=["Rock"],
            primary_artist=artist,
            primary_genre="Rock",
        )
    )


def membership(list_type: ListType, user_id: str, release: Release, **fields) -> ListMembership:
    assert release.id is not None
    return ListMembership(
        list_type=list_type,
        user_id=user_id,
        release_id=release.id,
        title=release.title,
        primary_artist=release.primary_artist,
        year=release.year,
        **fields,
    )


@pytest.mark.asyncio
async def test_database_connection(db: Database):
    """Test database connects and creates tables."""
    assert db._db is not None
    assert db.connected is True


@pytest.mark.asyncio
async def test_release_insert_and_get(db: Database):
    """Test releases round-trip JSON columns."""
    release = await add_release(db, 1001, "Test Album")

    assert release.id is not None
    assert release.created_at is not None
    assert release.created_at == release.updated_at

    by_discogs = await db.get_release_by_discogs_id(1001)
    assert by_discogs is not None
    assert by_discogs.id == release.id
    assert by_discogs.artists == [DiscogsArtist(name="Artist")]
    assert by_discogs.formats[0].text == "Red"
    assert by_discogs.genres == ["Rock"]

    assert await db.get_release_by_discogs_id(9999) is None
    assert await db.get_release(9999) is None


@pytest.mark.asyncio
async def test_release_update_keeps_identity(db: Database):
    """Test update rewrites fields but keeps id and created_at."""
    release = await add_release(db, 1001, "Old Title")
    assert release.id is not None

    updated = await db.update_release(release.id, Release(discogs_id=1001, title="New Title", year=2010))

    assert updated.id == release.id
    assert updated.discogs_id == 1001
    assert updated.title == "New Title"
    assert updated.artists == []
    assert updated.created_at == release.created_at
    assert await db.get_release_count() == 1


@pytest.mark.asyncio
async def test_list_releases(db: Database):
    """Test paging and sorting the catalog."""
    await add_release(db, 1, "Bravo", year=1990)
    await add_release(db, 2, "Alpha", year=2005)
    await add_release(db, 3, "Charlie", year=1975)

    releases, total = await db.list_releases(limit=2, offset=0, sort_column="year", order=SortOrder.ASC)
    assert total == 3
    assert [r.title for r in releases] == ["Charlie", "Bravo"]

    releases, _ = await db.list_releases(limit=10, offset=0, sort_column="title", order=SortOrder.DESC)
    assert [r.title for r in releases] == ["Charlie", "Bravo", "Alpha"]

    with pytest.raises(ValueError):
        await db.list_releases(sort_column="id; DROP TABLE releases")


@pytest.mark.asyncio
async def test_membership_lifecycle(db: Database):
    """Test insert, get, update and delete of a membership row."""
    release = await add_release(db, 1001, "Test Album")
    assert release.id is not None
    added = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    created = await db.insert_membership(
        membership(ListType.COLLECTION, "user1", release, rating=3, notes="Mint", folder_id=1, date_added=added)
    )
    assert created.id is not None
    assert created.list_type == ListType.COLLECTION
    assert created.rating == 3
    assert created.date_added == added

    updated = await db.update_membership(ListType.COLLECTION, "user1", release.id, {"rating": 5, "notes": ""})
    assert updated is not None
    assert updated.rating == 5
    assert updated.notes == ""
    assert updated.date_added == added

    assert await db.get_membership(ListType.WANTLIST, "user1", release.id) is None
    assert await db.get_membership(ListType.COLLECTION, "user2", release.id) is None

    assert await db.delete_membership(ListType.COLLECTION, "user1", release.id) is True
    assert await db.delete_membership(ListType.COLLECTION, "user1", release.id) is False
    assert await db.get_membership(ListType.COLLECTION, "user1", release.id) is None


@pytest.mark.asyncio
async def test_membership_duplicate_conflicts(db: Database):
    """Test a second row for the same user and release is rejected."""
    release = await add_release(db, 1001, "Test Album")
    await db.insert_membership(membership(ListType.WANTLIST, "user1", release))

    with pytest.raises(ConflictError):
        await db.insert_membership(membership(ListType.WANTLIST, "user1", release))

    # Same release in another list or for another user is fine
    await db.insert_membership(membership(ListType.COLLECTION, "user1", release))
    await db.insert_membership(membership(ListType.WANTLIST, "user2", release))
    assert await db.get_membership_count(ListType.WANTLIST, "user1") == 1


@pytest.mark.asyncio
async def test_membership_conflict_keeps_pending_writes(db: Database):
    """Test a duplicate insert does not discard another caller's uncommitted statement."""
    release = await add_release(db, 1001, "Test Album")
    await db.insert_membership(membership(ListType.COLLECTION, "user1", release))

    # Another pass has executed but not yet committed
    await db._db.execute("UPDATE releases SET title = ? WHERE id = ?", ("Renamed", release.id))

    with pytest.raises(ConflictError):
        await db.insert_membership(membership(ListType.COLLECTION, "user1", release))

    await db._db.commit()
    stored = await db.get_release_by_discogs_id(1001)
    assert stored.title == "Renamed"


@pytest.mark.asyncio
async def test_update_membership_rejects_unknown_columns(db: Database):
    """Test update only accepts membership columns."""
    release = await add_release(db, 1001, "Test Album")
    assert release.id is not None
    await db.insert_membership(membership(ListType.WANTLIST, "user1", release))

    with pytest.raises(ValueError):
        await db.update_membership(ListType.WANTLIST, "user1", release.id, {"created_at": "2020-01-01"})

    assert await db.update_membership(ListType.WANTLIST, "nobody", release.id, {"notes": "x"}) is None


@pytest.mark.asyncio
async def test_list_memberships_sorted_with_release(db: Database):
    """Test listing a user's rows sorted on denormalized columns."""
    for discogs_id, title, artist in ((1, "Bravo", "Zed"), (2, "Alpha", "Moe"), (3, "Charlie", "Abe")):
        release = await add_release(db, discogs_id, title, artist=artist)
        await db.insert_membership(membership(ListType.COLLECTION, "user1", release))

    other = await add_release(db, 4, "Delta")
    await db.insert_membership(membership(ListType.COLLECTION, "user2", other))

    items, total = await db.list_memberships(
        ListType.COLLECTION, "user1", limit=2, offset=0, sort_column="primary_artist", order=SortOrder.ASC
    )

    assert total == 3
    assert [item.primary_artist for item in items] == ["Abe", "Moe"]
    assert items[0].release is not None
    assert items[0].release.title == "Charlie"

    items, _ = await db.list_memberships(ListType.COLLECTION, "user1", limit=10, offset=2, sort_column="title")
    assert [item.title for item in items] == ["Alpha"]

    with pytest.raises(ValueError):
        await db.list_memberships(ListType.COLLECTION, "user1", sort_column="notes")


@pytest.mark.asyncio
async def test_membership_stats(db: Database):
    """Test list stats with collection rating aggregates."""
    ratings = (4, 5, 0)
    for discogs_id, rating in enumerate(ratings, start=1):
        release = await add_release(db, discogs_id, f"Album {discogs_id}")
        await db.insert_membership(membership(ListType.COLLECTION, "user1", release, rating=rating))
        await db.insert_membership(membership(ListType.WANTLIST, "user1", release))

    stats = await db.get_membership_stats(ListType.COLLECTION, "user1")
    assert stats == {"total_items": 3, "rated_items": 2, "average_rating": 4.5}

    assert await db.get_membership_stats(ListType.WANTLIST, "user1") == {"total_items": 3}
    assert await db.get_membership_stats(ListType.COLLECTION, "nobody") == {
        "total_items": 0,
        "rated_items": 0,
        "average_rating": 0.0,
    }


@pytest.mark.asyncio
async def test_database_size(db: Database):
    """Test database size reporting."""
    assert db.get_database_size() > 0
