"""Debounced incremental artist search.

Every keystroke bumps the session generation and restarts the quiet-period
timer. A search goes out only once the input has been stable for the whole
quiet period. Its response is committed only if its generation is still
current; superseded responses are dropped without a trace in the UI state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

import structlog

from release_tracker.config import SearchSettings
from release_tracker.errors import ReleaseTrackerError
from release_tracker.models.search import SearchResult, SearchSession
from release_tracker.timer import CancellableTimer

if TYPE_CHECKING:
    from release_tracker.health import ConnectionMonitor
    from release_tracker.models.artist import Artist

log = structlog.get_logger()

SearchFn = Callable[[str, int], Awaitable[list[SearchResult]]]
FollowedFn = Callable[[], Awaitable[Iterable["Artist"]]]
ResultsListener = Callable[[list[SearchResult]], None]


def annotate_followed(
    results: Iterable[SearchResult], followed: Iterable[Artist]
) -> list[SearchResult]:
    """Mark results that match an already-followed artist.

    Matching is by external ID when the result has one. Otherwise (or when
    the followed artist has no ID) it falls back to a case-insensitive name.
    """
    followed_ids: set[str] = set()
    followed_names: set[str] = set()
    unidentified_names: set[str] = set()
    for artist in followed:
        name = artist.name.strip().casefold()
        followed_names.add(name)
        if artist.external_id:
            followed_ids.add(artist.external_id)
        else:
            unidentified_names.add(name)

    annotated = []
    for result in results:
        name = result.name.strip().casefold()
        if result.external_id:
            is_followed = result.external_id in followed_ids or name in unidentified_names
        else:
            is_followed = name in followed_names
        annotated.append(
            result.model_copy(update={"is_followed": result.is_followed or is_followed})
        )
    return annotated


class DebouncedSearchController:
    def __init__(
        self,
        search: SearchFn,
        followed: FollowedFn,
        monitor: ConnectionMonitor,
        settings: SearchSettings | None = None,
        *,
        on_results: ResultsListener | None = None,
    ) -> None:
        settings = settings or SearchSettings()
        self._search = search
        self._followed = followed
        self._monitor = monitor
        self._min_length = settings.min_query_length
        self._limit = settings.limit
        self._timer = CancellableTimer(settings.debounce_seconds)
        self._session = SearchSession()
        self._results: list[SearchResult] = []
        self._on_results = on_results
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def session(self) -> SearchSession:
        return self._session

    @property
    def query(self) -> str:
        return self._session.query

    @property
    def results(self) -> list[SearchResult]:
        return list(self._results)

    @property
    def is_searching(self) -> bool:
        """True while a search is scheduled or its response is outstanding."""
        return self._timer.pending or self._session.pending_token is not None

    def update_query(self, query: str) -> None:
        """Feed the latest input text. Call on every keystroke."""
        session = self._session
        session.generation += 1
        session.query = query
        session.pending_token = None
        self._timer.cancel()

        if len(query.strip()) < self._min_length:
            self._commit([])
            return

        generation = session.generation
        self._timer.start(lambda: self._issue(generation))

    def clear(self) -> None:
        self.update_query("")

    async def settle(self) -> None:
        """Wait until no search is scheduled or running."""
        while self._timer.pending or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            else:
                await asyncio.sleep(self._timer.delay)

    async def aclose(self) -> None:
        self._timer.cancel()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _issue(self, generation: int) -> None:
        if not self._session.is_current(generation):
            return
        self._session.pending_token = generation
        task = asyncio.create_task(self._run(generation, self._session.query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, token: int, query: str) -> None:
        results = await self._search_once(query.strip())
        if not self._session.is_current(token):
            log.debug(
                "search_response_discarded",
                query=query,
                token=token,
                generation=self._session.generation,
            )
            return
        self._session.pending_token = None
        self._commit(results)

    async def _search_once(self, query: str) -> list[SearchResult]:
        if not self._monitor.is_connected:
            log.info("search_skipped", reason="disconnected", query=query)
            return []
        try:
            results = await self._search(query, self._limit)
        except ReleaseTrackerError as exc:
            # Best-effort: a failed search reads as "no matches"
            log.warning("search_failed", query=query, code=str(exc.code), error=exc.message)
            return []
        except Exception:
            log.error("search_failed", query=query, exc_info=True)
            return []

        try:
            followed = await self._followed()
        except ReleaseTrackerError as exc:
            log.warning("search_followed_lookup_failed", code=str(exc.code), error=exc.message)
            followed = []
        except Exception:
            log.error("search_followed_lookup_failed", exc_info=True)
            followed = []
        return annotate_followed(results, followed)

    def _commit(self, results: list[SearchResult]) -> None:
        self._results = results
        if self._on_results is not None:
            self._on_results(list(results))
