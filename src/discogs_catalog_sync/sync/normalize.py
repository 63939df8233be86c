"""Derive flat sortable fields from Discogs release payloads.

All functions here are pure. Every derived field is independently
nullable: an empty input list yields None, never an exception.
"""

import re
from typing import Any, Final

from ..models import BasicInformation, DiscogsArtist, DiscogsFormat, DiscogsLabel, Release, SortableFields


class _Unset:
    """Marker for a release field that was never set (as opposed to set to None)."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset()

# Release fields copied onto list membership rows
DENORMALIZED_FIELDS: Final = (
    "title",
    "primary_artist",
    "all_artists",
    "year",
    "primary_genre",
    "primary_format",
    "vinyl_color",
)

_TRAILING_COMMA = re.compile(r",\s*$")
_COMMA_RUN = re.compile(r",\s+")


def _artist_display_name(artist: DiscogsArtist) -> str:
    return artist.name.strip() or artist.anv.strip()


def extract_primary_artist(artists: list[DiscogsArtist]) -> str | None:
    """First artist's name, or its name variation when the name is blank."""
    if not artists:
        return None
    return _artist_display_name(artists[0]) or None


def extract_all_artists(artists: list[DiscogsArtist]) -> str | None:
    """All artist names joined with ", ", skipping entries with no name at all."""
    names = [name for name in (_artist_display_name(a) for a in artists) if name]
    if not names:
        return None
    return ", ".join(names)


def extract_first(values: list[str]) -> str | None:
    """First element of a genre/style list."""
    if not values:
        return None
    return values[0] or None


def extract_primary_format(formats: list[DiscogsFormat]) -> str | None:
    if not formats:
        return None
    return formats[0].name or None


def clean_color_text(text: str) -> str | None:
    """Normalize free-text format notes: "Red,  Black Splatter,  " -> "Red, Black Splatter"."""
    cleaned = _TRAILING_COMMA.sub("", text)
    cleaned = _COMMA_RUN.sub(", ", cleaned).strip()
    # Text made only of commas and whitespace
    if not cleaned.replace(",", "").strip():
        return None
    return cleaned


def extract_vinyl_color(formats: list[DiscogsFormat]) -> str | None:
    """Free text of the first vinyl format, or of the first format carrying text."""
    for fmt in formats:
        if "vinyl" in fmt.name.lower() or fmt.text:
            if not fmt.text:
                return None
            return clean_color_text(fmt.text)
    return None


def extract_catalog_number(labels: list[DiscogsLabel]) -> str | None:
    """Catalog number of the first label that has a non-blank one."""
    for label in labels:
        if label.catno and label.catno.strip():
            return label.catno
    return None


def extract_record_label(labels: list[DiscogsLabel]) -> str | None:
    if not labels:
        return None
    return labels[0].name or None


def extract_sortable_fields(info: BasicInformation) -> SortableFields:
    """Derive all sortable/display scalars for a release payload."""
    return SortableFields(
        primary_artist=extract_primary_artist(info.artists),
        all_artists=extract_all_artists(info.artists),
        primary_genre=extract_first(info.genres),
        primary_style=extract_first(info.styles),
        primary_format=extract_primary_format(info.formats),
        vinyl_color=extract_vinyl_color(info.formats),
        catalog_number=extract_catalog_number(info.labels),
        record_label=extract_record_label(info.labels),
    )


def copy_release_data_for_sorting(release: Release) -> dict[str, Any]:
    """Project a release down to the fields denormalized onto list rows.

    Fields never set on ``release`` come back as ``UNSET`` so callers can
    tell them apart from fields explicitly set to None.
    """
    fields_set = release.model_fields_set
    return {name: getattr(release, name) if name in fields_set else UNSET for name in DENORMALIZED_FIELDS}
