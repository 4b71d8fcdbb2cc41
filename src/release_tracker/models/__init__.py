from __future__ import annotations

from release_tracker.models.artist import Artist, ArtistIdentity, ArtistList
from release_tracker.models.cache import CacheEntry, CacheStatus, QueryKey, QueryOptions
from release_tracker.models.outcomes import FollowOutcome, MutationOutcome, OutcomeKind
from release_tracker.models.release import (
    Pagination,
    Release,
    ReleaseList,
    ReleasePage,
    ReleaseStats,
)
from release_tracker.models.search import SearchResult, SearchSession

__all__ = [
    # artists
    "Artist",
    "ArtistIdentity",
    "ArtistList",
    # releases
    "Release",
    "ReleaseList",
    "ReleasePage",
    "Pagination",
    "ReleaseStats",
    # search
    "SearchResult",
    "SearchSession",
    # cache
    "CacheEntry",
    "CacheStatus",
    "QueryKey",
    "QueryOptions",
    # mutations
    "FollowOutcome",
    "MutationOutcome",
    "OutcomeKind",
]
