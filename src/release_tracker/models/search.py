from __future__ import annotations

from dataclasses import dataclass

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SearchResult(BaseModel):
    """Single artist candidate returned by GET /api/artists/search."""

    model_config = ConfigDict(populate_by_name=True)

    external_id: str | None = Field(
        default=None, validation_alias=AliasChoices("external_id", "mbid", "id")
    )
    name: str
    disambiguation: str | None = None
    country: str | None = None
    begin_date: str | None = Field(
        default=None, validation_alias=AliasChoices("begin_date", "beginDate")
    )
    is_followed: bool = False


@dataclass
class SearchSession:
    """Tracks the latest search request.

    ``generation`` bumps on every query change. Only a response issued with
    ``pending_token == generation`` may write results.
    """

    generation: int = 0
    query: str = ""
    pending_token: int | None = None

    def is_current(self, token: int) -> bool:
        return token == self.generation
