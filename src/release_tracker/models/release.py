from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def parse_release_date(value: Any) -> date | None:
    """Parse a release date leniently.

    MusicBrainz dates may be partial ("2019" or "2019-06"); those are padded to
    the first day so they still sort. Full ISO datetimes keep only the date.
    Anything unparseable (e.g. "2019-13") becomes ``None`` and sorts as undated.
    """
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    text = str(value).strip()
    if not text:
        return None
    parts = text[:10].split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 and parts[1] else 1
        day = int(parts[2]) if len(parts) > 2 and parts[2] else 1
        return date(year, month, day)
    except ValueError:
        return None


class Release(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    artist_id: str
    artist_name: str
    title: str
    external_id: str | None = Field(
        default=None, validation_alias=AliasChoices("external_id", "mbid")
    )
    release_date: date | None = None
    release_type: str | None = None
    track_count: int = Field(default=0, ge=0)
    is_new: bool = False
    discovered_at: datetime | None = None

    @field_validator("release_date", mode="before")
    @classmethod
    def validate_release_date(cls, v: Any) -> date | None:
        return parse_release_date(v)


class ReleaseList(BaseModel):
    releases: list[Release]
    total: int = 0


class Pagination(BaseModel):
    page: int = 1
    limit: int = 0
    total: int = 0
    total_pages: int = Field(default=0, validation_alias=AliasChoices("total_pages", "totalPages"))
    has_next_page: bool = Field(
        default=False, validation_alias=AliasChoices("has_next_page", "hasNextPage")
    )
    has_previous_page: bool = Field(
        default=False, validation_alias=AliasChoices("has_previous_page", "hasPreviousPage")
    )


class ReleasePage(BaseModel):
    releases: list[Release]
    pagination: Pagination = Pagination()


class ReleaseStats(BaseModel):
    """Aggregate counters from GET /api/releases/stats."""

    model_config = ConfigDict(extra="allow")

    total_releases: int = 0
    new_releases: int = 0
    listened: int = 0
    this_month: int = 0
    albums: int = 0
    singles: int = 0
    eps: int = 0
