"""Composition root.

``open_app_state`` builds every component once and hands them out through
``AppState``. The cache, client and monitor are owned here and injected into
the components that need them; there are no module-level singletons.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

import httpx
import structlog

from release_tracker.client import ReleaseTrackerClient, build_http_client
from release_tracker.config import Settings
from release_tracker.health import ConnectionMonitor, ConnectionState
from release_tracker.logging_config import configure_logging
from release_tracker.mutations import MutationCoordinator
from release_tracker.queries import DashboardQueries
from release_tracker.query_cache import QueryCache
from release_tracker.search import DebouncedSearchController, ResultsListener

log = structlog.get_logger()


@dataclass
class AppState:
    settings: Settings
    http_client: httpx.AsyncClient
    client: ReleaseTrackerClient
    cache: QueryCache
    monitor: ConnectionMonitor
    queries: DashboardQueries
    search: DebouncedSearchController
    mutations: MutationCoordinator
    background_tasks: list[asyncio.Task[None]] = field(default_factory=list)

    @property
    def connected(self) -> bool:
        return self.monitor.is_connected


def build_app_state(
    settings: Settings,
    http_client: httpx.AsyncClient,
    *,
    clock: Callable[[], float] = time.monotonic,
    on_search_results: ResultsListener | None = None,
) -> AppState:
    """Wire all components around an existing http client."""
    client = ReleaseTrackerClient(http_client)
    cache = QueryCache.from_settings(settings.query, clock=clock)
    monitor = ConnectionMonitor(client)
    queries = DashboardQueries(cache, client, monitor, settings)
    search = DebouncedSearchController(
        queries.search_artists,
        queries.followed_artists,
        monitor,
        settings.search,
        on_results=on_search_results,
    )
    mutations = MutationCoordinator(client, cache, monitor)
    return AppState(
        settings=settings,
        http_client=http_client,
        client=client,
        cache=cache,
        monitor=monitor,
        queries=queries,
        search=search,
        mutations=mutations,
    )


@contextlib.asynccontextmanager
async def open_app_state(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    on_search_results: ResultsListener | None = None,
) -> AsyncIterator[AppState]:
    """Build the app and probe the backend once. Cache GC runs until exit.

    If ``http_client`` is given, the caller keeps ownership of it.
    """
    settings = settings or Settings()
    configure_logging(settings.logging)
    owns_client = http_client is None
    if http_client is None:
        http_client = build_http_client(settings.api)

    state = build_app_state(settings, http_client, on_search_results=on_search_results)
    gc_task = asyncio.create_task(
        state.cache.run_gc(settings.query.gc_interval_seconds), name="query-cache-gc"
    )
    state.background_tasks.append(gc_task)
    try:
        initial = await state.monitor.probe()
        log.info("app_started", base_url=settings.api.base_url, connection=str(initial))
        yield state
    finally:
        for task in state.background_tasks:
            task.cancel()
        await asyncio.gather(*state.background_tasks, return_exceptions=True)
        await state.search.aclose()
        await state.cache.aclose()
        if owns_client:
            await http_client.aclose()
        log.info("app_stopped")


async def refresh(state: AppState) -> ConnectionState:
    """Manual refresh: re-probe the backend, then invalidate every cached query.

    Invalidation only runs once the probe reports ``connected``, so a refresh
    while offline makes no calls besides the probe.
    """
    result = await state.monitor.probe()
    if result is ConnectionState.CONNECTED:
        await state.cache.invalidate_all()
    else:
        log.info("refresh_skipped_invalidation", connection=str(result))
    return result
