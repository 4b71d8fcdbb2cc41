"""Cached reads for the dashboard views.

Each read maps to one canonical query key and goes through the shared
``QueryCache``. Reads refuse to run while the connection gate is closed, and
so do their loaders, so a background refetch never reaches the network
either.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from release_tracker.models.cache import QueryKey, QueryOptions, make_key
from release_tracker.presenter import ReleaseGroup, group_releases

if TYPE_CHECKING:
    from release_tracker.client import ReleaseTrackerClient
    from release_tracker.config import Settings
    from release_tracker.health import ConnectionMonitor
    from release_tracker.models.artist import Artist, ArtistList
    from release_tracker.models.cache import Loader
    from release_tracker.models.release import ReleaseList, ReleasePage, ReleaseStats
    from release_tracker.models.search import SearchResult
    from release_tracker.query_cache import Listener, QueryCache, Subscription

T = TypeVar("T")

# Search is best-effort: short-lived and never retried
SEARCH_OPTIONS = QueryOptions(stale_time=30.0, gc_time=300.0, retry=0)


class QueryKeys:
    ARTISTS: QueryKey = ("artists",)
    RELEASES: QueryKey = ("releases",)
    SYNC: QueryKey = ("sync",)

    @staticmethod
    def artist_list(sort: str | None = None, order: str | None = None) -> QueryKey:
        return make_key("artists", "list", sort, order)

    @staticmethod
    def artist_search(query: str, limit: int) -> QueryKey:
        return make_key("artists", "search", query, limit)

    @staticmethod
    def new_releases(limit: int) -> QueryKey:
        return make_key("releases", "new", limit)

    @staticmethod
    def release_stats() -> QueryKey:
        return ("releases", "stats")

    @staticmethod
    def release_page(**filters: Any) -> QueryKey:
        return make_key("releases", "list", *(f"{k}={v}" for k, v in sorted(filters.items())))

    @staticmethod
    def sync_status() -> QueryKey:
        return ("sync", "status")


class DashboardQueries:
    def __init__(
        self,
        cache: QueryCache,
        client: ReleaseTrackerClient,
        monitor: ConnectionMonitor,
        settings: Settings,
    ) -> None:
        self._cache = cache
        self._client = client
        self._monitor = monitor
        self._settings = settings

    def _gated(self, call: Callable[[], Awaitable[T]]) -> Loader:
        async def load() -> T:
            self._monitor.require_connected()
            return await call()

        return load

    async def _fetch(
        self,
        key: QueryKey,
        call: Callable[[], Awaitable[T]],
        options: QueryOptions | None = None,
    ) -> T:
        self._monitor.require_connected()
        return await self._cache.fetch(key, self._gated(call), options)

    def observe(self, key: QueryKey, listener: Listener | None = None) -> Subscription:
        """Keep ``key`` alive and get notified of its transitions."""
        return self._cache.subscribe(key, listener)

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def artists(self, sort: str | None = None, order: str | None = None) -> ArtistList:
        return await self._fetch(
            QueryKeys.artist_list(sort, order), lambda: self._client.list_artists(sort, order)
        )

    async def followed_artists(self) -> list[Artist]:
        return (await self.artists()).artists

    async def search_artists(self, query: str, limit: int | None = None) -> list[SearchResult]:
        limit = limit or self._settings.search.limit
        return await self._fetch(
            QueryKeys.artist_search(query, limit),
            lambda: self._client.search_artists(query, limit),
            SEARCH_OPTIONS,
        )

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def new_releases(self, limit: int | None = None) -> ReleaseList:
        limit = limit or self._settings.releases.new_limit
        return await self._fetch(
            QueryKeys.new_releases(limit), lambda: self._client.new_releases(limit)
        )

    async def grouped_new_releases(self, limit: int | None = None) -> list[ReleaseGroup]:
        return group_releases((await self.new_releases(limit)).releases)

    async def release_stats(self) -> ReleaseStats:
        return await self._fetch(QueryKeys.release_stats(), self._client.release_stats)

    async def releases(self, **filters: Any) -> ReleasePage:
        """Paged release list; ``filters`` go to ``ReleaseTrackerClient.list_releases``."""
        filters = {k: v for k, v in filters.items() if v is not None}
        return await self._fetch(
            QueryKeys.release_page(**filters), lambda: self._client.list_releases(**filters)
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_status(self) -> Any:
        return await self._fetch(QueryKeys.sync_status(), self._client.sync_status)
