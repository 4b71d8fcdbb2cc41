from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

QueryKey = tuple[str, ...]
Loader = Callable[[], Awaitable[Any]]


def make_key(*parts: object) -> QueryKey:
    """Build a query key; ``None`` parts become empty strings."""
    return tuple("" if part is None else str(part) for part in parts)


class CacheStatus(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    FETCHING = "fetching"
    ERROR = "error"


class QueryOptions(BaseModel):
    """Per-fetch cache policy. Times are in seconds."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    stale_time: float = Field(default=300.0, ge=0)
    gc_time: float = Field(default=600.0, gt=0)
    retry: int = Field(default=2, ge=0)
    # attempt (0-based) -> delay in seconds
    retry_delay: Callable[[int], float] | None = None
    timeout: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_windows(self) -> QueryOptions:
        if self.gc_time <= self.stale_time:
            raise ValueError("gc_time must be greater than stale_time")
        return self


@dataclass(eq=False)
class CacheEntry:
    """One cached query result. At most one exists per key."""

    key: QueryKey
    data: Any = None
    has_data: bool = False
    fetched_at: float = 0.0
    stale_at: float = 0.0
    gc_at: float = 0.0
    status: CacheStatus = CacheStatus.STALE
    error: BaseException | None = None

    # Last loader/options, kept so an observed entry can be refetched on invalidate
    loader: Loader | None = field(default=None, repr=False)
    options: QueryOptions | None = field(default=None, repr=False)
    observers: int = 0
    listeners: list[Callable[[CacheEntry], None]] = field(default_factory=list, repr=False)
    in_flight: asyncio.Task[Any] | None = field(default=None, repr=False)
    # Bumped by invalidate(); a load started under an older value lands stale
    invalidations: int = 0
    invalidated: bool = False
