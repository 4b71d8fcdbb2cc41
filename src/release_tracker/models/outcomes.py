from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from release_tracker.models.artist import Artist


class OutcomeKind(StrEnum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    FAILURE = "failure"


class MutationOutcome(BaseModel):
    """Result of a write operation. Errors are reported here, never raised."""

    kind: OutcomeKind
    message: str
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class FollowOutcome(MutationOutcome):
    artist: Artist | None = None
