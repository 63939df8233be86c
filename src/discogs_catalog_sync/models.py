"""Data models for discogs-catalog-sync."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListType(str, Enum):
    """Reconciled list types."""

    COLLECTION = "collection"
    WANTLIST = "wantlist"
    SUGGESTIONS = "suggestions"


class SortOrder(str, Enum):
    """Sort direction for list queries."""

    ASC = "ASC"
    DESC = "DESC"


# ========== Discogs payloads ==========


class DiscogsArtist(BaseModel):
    """Artist credit on a release. ``anv`` is the artist name variation."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    anv: str = ""


class DiscogsLabel(BaseModel):
    """Label credit with catalog number."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    catno: str = ""


class DiscogsFormat(BaseModel):
    """Format entry, e.g. Vinyl x2 with descriptions [LP, Album] and free text."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    qty: str | None = None
    descriptions: list[str] = Field(default_factory=list)
    text: str | None = None

    @field_validator("descriptions", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value or []


class BasicInformation(BaseModel):
    """Release payload embedded in every collection/wantlist entry."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    year: int | None = None
    thumb: str | None = None
    cover_image: str | None = None
    artists: list[DiscogsArtist] = Field(default_factory=list)
    labels: list[DiscogsLabel] = Field(default_factory=list)
    formats: list[DiscogsFormat] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)

    @field_validator("artists", "labels", "formats", "genres", "styles", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value or []


class NoteField(BaseModel):
    """One custom field value from Discogs collection notes."""

    model_config = ConfigDict(extra="ignore")

    field_id: int | None = None
    value: str = ""


class PlainNote(BaseModel):
    """Notes sent as a single string (wantlist)."""

    text: str

    def as_text(self) -> str:
        return self.text


class StructuredNotes(BaseModel):
    """Notes sent as a list of custom field values (collection)."""

    fields: list[NoteField] = Field(default_factory=list)

    def as_text(self) -> str:
        return "\n".join(field.value for field in self.fields)


class RemoteListItem(BaseModel):
    """One entry of a Discogs collection folder or wantlist page."""

    model_config = ConfigDict(extra="ignore")

    id: int
    instance_id: int | None = None
    folder_id: int | None = None
    rating: int = 0
    date_added: datetime | None = None
    notes: PlainNote | StructuredNotes | None = None
    basic_information: BasicInformation

    @field_validator("notes", mode="before")
    @classmethod
    def _parse_notes(cls, value: Any) -> Any:
        if value is None or value == "" or value == []:
            return None
        if isinstance(value, str):
            return PlainNote(text=value)
        if isinstance(value, list):
            return StructuredNotes(fields=[NoteField.model_validate(v) for v in value])
        return value

    @field_validator("rating", mode="before")
    @classmethod
    def _none_rating(cls, value: Any) -> Any:
        return value or 0

    @property
    def notes_text(self) -> str | None:
        """Notes flattened to text, None when absent."""
        return self.notes.as_text() if self.notes is not None else None


class Pagination(BaseModel):
    """Discogs pagination envelope."""

    model_config = ConfigDict(extra="ignore")

    page: int = 1
    pages: int = 0
    per_page: int = 50
    items: int = 0


class ListPage(BaseModel):
    """A single fetched page of a remote list.

    Entries are kept as received so one malformed entry cannot fail the page;
    the sync engine validates them one at a time as RemoteListItem.
    """

    items: list[Any] = Field(default_factory=list)
    pagination: Pagination


class SearchResults(BaseModel):
    """Discogs database search page. Results are passed through as received."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


# ========== Local catalog ==========


class SortableFields(BaseModel):
    """Flat scalars derived from a release payload for sorting and display."""

    primary_artist: str | None = None
    all_artists: str | None = None
    primary_genre: str | None = None
    primary_style: str | None = None
    primary_format: str | None = None
    vinyl_color: str | None = None
    catalog_number: str | None = None
    record_label: str | None = None


class Release(BaseModel):
    """Canonical catalog entry keyed by the Discogs release id."""

    id: int | None = None
    discogs_id: int
    title: str
    year: int | None = None
    thumb_url: str | None = None
    cover_image_url: str | None = None

    artists: list[DiscogsArtist] = Field(default_factory=list)
    labels: list[DiscogsLabel] = Field(default_factory=list)
    formats: list[DiscogsFormat] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)

    primary_artist: str | None = None
    all_artists: str | None = None
    primary_genre: str | None = None
    primary_style: str | None = None
    primary_format: str | None = None
    vinyl_color: str | None = None
    catalog_number: str | None = None
    record_label: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class ListMembership(BaseModel):
    """A user's entry for a release in one of the three lists.

    ``discogs_instance_id``, ``folder_id`` and ``rating`` are only used by the
    collection. The release columns are denormalized copies kept fresh by
    every sync pass.
    """

    id: int | None = None
    list_type: ListType
    user_id: str
    release_id: int

    discogs_instance_id: int | None = None
    folder_id: int | None = None
    rating: int | None = None
    notes: str | None = None
    date_added: datetime | None = None

    title: str | None = None
    primary_artist: str | None = None
    all_artists: str | None = None
    year: int | None = None
    primary_genre: str | None = None
    primary_format: str | None = None
    vinyl_color: str | None = None

    release: Release | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


# ========== Sync results ==========


class SyncRunResult(BaseModel):
    """Outcome of reconciling one list type."""

    list_type: ListType
    synced: int = 0
    errors: int = 0
    total: int = 0


class FullSyncResult(BaseModel):
    """Report of one scheduled or manual full sync.

    On success ``collection`` and ``wantlist`` are set; on failure ``error``
    is, together with any list result that completed before the failure.
    """

    success: bool
    trigger: str
    duration_minutes: float
    collection: SyncRunResult | None = None
    wantlist: SyncRunResult | None = None
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
