from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from release_tracker.models.release import parse_release_date


class Artist(BaseModel):
    """A followed artist as returned by GET /api/artists."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    # Wire name is "mbid" (MusicBrainz ID)
    external_id: str | None = Field(
        default=None, validation_alias=AliasChoices("external_id", "mbid")
    )
    followed_at: datetime
    latest_release_date: date | None = None
    total_releases: int = Field(default=0, ge=0)
    new_releases: int = Field(default=0, ge=0)

    @field_validator("latest_release_date", mode="before")
    @classmethod
    def validate_latest_release_date(cls, v: Any) -> date | None:
        return parse_release_date(v)


class ArtistList(BaseModel):
    artists: list[Artist]
    total: int = 0
    sort: str | None = None
    order: str | None = None


class ArtistIdentity(BaseModel):
    """Payload for POST /api/artists."""

    name: str
    external_id: str | None = None

    @property
    def key(self) -> str:
        """Stable identity used to coalesce duplicate follow requests."""
        if self.external_id:
            return f"mbid:{self.external_id}"
        return f"name:{self.name.strip().casefold()}"

    def to_payload(self) -> dict[str, str]:
        payload = {"name": self.name}
        if self.external_id:
            payload["mbid"] = self.external_id
        return payload
