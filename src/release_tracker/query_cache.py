"""In-memory query cache with staleness, garbage collection and dedup.

Each query key owns at most one ``CacheEntry``. A fetch that finds fresh data
returns it without awaiting anything. A stale entry is served immediately and
refreshed in the background. A missing entry starts (or joins) the single
in-flight load for its key.

The cache runs on one event loop. Every read-modify-write of an entry happens
between two awaits, so no lock is needed.
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

import structlog

from release_tracker.errors import NetworkError, ReleaseTrackerError
from release_tracker.models.cache import (
    CacheEntry,
    CacheStatus,
    Loader,
    QueryKey,
    QueryOptions,
)

if TYPE_CHECKING:
    from release_tracker.config import QuerySettings

log = structlog.get_logger()

Listener = Callable[[CacheEntry], None]


def exponential_backoff(base: float, maximum: float) -> Callable[[int], float]:
    """Delay for retry ``attempt`` (0-based): ``min(base * 2**attempt, maximum)``."""

    def delay(attempt: int) -> float:
        return min(base * (2**attempt), maximum)

    return delay


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, ReleaseTrackerError):
        return exc.recoverable
    return True


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Background refetches may have no awaiter; the error already lives on the entry.
    if not task.cancelled():
        task.exception()


def _clear_in_flight(entry: CacheEntry, task: asyncio.Task[Any]) -> None:
    if entry.in_flight is task:
        entry.in_flight = None


class Subscription:
    """Active interest in a query key. Keeps the entry from being collected."""

    def __init__(self, cache: QueryCache, entry: CacheEntry, listener: Listener | None) -> None:
        self._cache = cache
        self._entry = entry
        self._listener = listener
        self._closed = False

    @property
    def key(self) -> QueryKey:
        return self._entry.key

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cache._release(self._entry, self._listener)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class QueryCache:
    def __init__(
        self,
        defaults: QueryOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._defaults = defaults or QueryOptions()
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._default_delay = exponential_backoff(1.0, 30.0)

    @classmethod
    def from_settings(
        cls, settings: QuerySettings, *, clock: Callable[[], float] = time.monotonic
    ) -> QueryCache:
        defaults = QueryOptions(
            stale_time=settings.stale_time_seconds,
            gc_time=settings.gc_time_seconds,
            retry=settings.retry,
            retry_delay=exponential_backoff(
                settings.retry_base_delay_seconds, settings.retry_max_delay_seconds
            ),
        )
        return cls(defaults, clock=clock)

    @property
    def defaults(self) -> QueryOptions:
        return self._defaults

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch(
        self,
        key: QueryKey,
        loader: Loader,
        options: QueryOptions | None = None,
    ) -> Any:
        """Return data for ``key``, loading it through ``loader`` when needed.

        Fresh data is returned as-is. Stale data is returned immediately and a
        single background refetch is scheduled. Without data, the caller waits
        on the one in-flight load for the key; if that load exhausts its
        retries, its error is raised to every waiter.
        """
        now = self._clock()
        self.collect_garbage(now)

        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.loader = loader
        entry.options = options or self._defaults
        self._degrade(entry, now)

        if entry.has_data:
            if entry.status is CacheStatus.FRESH:
                log.debug("cache_hit", key=key)
            else:
                self._start_load(entry, loader)
                log.debug("cache_stale_hit", key=key, status=str(entry.status))
            return entry.data

        task = self._start_load(entry, loader)
        # shield: one caller giving up must not cancel the load other callers share
        return await asyncio.shield(task)

    def get_entry(self, key: QueryKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None:
            self._degrade(entry, self._clock())
        return entry

    def get_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return None
        return entry.data

    def in_flight(self, key: QueryKey) -> asyncio.Task[Any] | None:
        entry = self._entries.get(key)
        return entry.in_flight if entry is not None else None

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_data(self, key: QueryKey, data: Any, options: QueryOptions | None = None) -> None:
        """Seed or overwrite ``key`` with fresh data, as if a load had just landed."""
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.options = options or entry.options or self._defaults
        self._store(entry, data, stale=False)

    def remove(self, key: QueryKey) -> bool:
        entry = self._entries.pop(key, None)
        return entry is not None

    async def invalidate(self, prefix: Iterable[str] = ()) -> None:
        """Mark every entry whose key starts with ``prefix`` as stale.

        Observed entries are refetched right away and this call waits for
        those refetches to settle. Unobserved entries refetch lazily on their
        next ``fetch``.
        """
        prefix = tuple(prefix)
        matched = 0
        refetching: list[CacheEntry] = []
        for entry in list(self._entries.values()):
            if entry.key[: len(prefix)] != prefix:
                continue
            matched += 1
            entry.invalidations += 1
            entry.invalidated = True
            if entry.status is CacheStatus.FRESH:
                self._set_status(entry, CacheStatus.STALE)
            if entry.observers > 0 and entry.loader is not None:
                # An in-flight load notices the bump and refetches once it lands
                self._start_load(entry, entry.loader)
                refetching.append(entry)

        log.info("cache_invalidated", prefix=prefix, matched=matched, refetching=len(refetching))

        for entry in refetching:
            while entry.in_flight is not None:
                await asyncio.gather(asyncio.shield(entry.in_flight), return_exceptions=True)

    async def invalidate_all(self) -> None:
        await self.invalidate(())

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, key: QueryKey, listener: Listener | None = None) -> Subscription:
        """Register interest in ``key``.

        ``listener`` is called with the entry after every status or data
        transition until the subscription is closed.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.observers += 1
        if listener is not None:
            entry.listeners.append(listener)
        return Subscription(self, entry, listener)

    def _release(self, entry: CacheEntry, listener: Listener | None) -> None:
        entry.observers = max(entry.observers - 1, 0)
        if listener is not None and listener in entry.listeners:
            entry.listeners.remove(listener)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def collect_garbage(self, now: float | None = None) -> int:
        """Drop unobserved, idle entries whose ``gc_at`` has passed."""
        if now is None:
            now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.observers == 0 and entry.in_flight is None and now > entry.gc_at
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("cache_gc", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    async def run_gc(self, interval: float) -> None:
        """Collect garbage every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.collect_garbage()

    async def aclose(self) -> None:
        """Cancel every in-flight load."""
        tasks = [e.in_flight for e in self._entries.values() if e.in_flight is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _degrade(self, entry: CacheEntry, now: float) -> None:
        if entry.status is CacheStatus.FRESH and (entry.invalidated or now > entry.stale_at):
            self._set_status(entry, CacheStatus.STALE)

    def _start_load(self, entry: CacheEntry, loader: Loader) -> asyncio.Task[Any]:
        if entry.in_flight is not None:
            return entry.in_flight
        task = asyncio.create_task(
            self._load(entry, loader, entry.invalidations), name=f"query:{'/'.join(entry.key)}"
        )
        task.add_done_callback(_consume_exception)
        # A task cancelled before its first step never reaches _load's finally
        task.add_done_callback(functools.partial(_clear_in_flight, entry))
        entry.in_flight = task
        self._set_status(entry, CacheStatus.FETCHING)
        return task

    async def _load(self, entry: CacheEntry, loader: Loader, started_under: int) -> Any:
        options = entry.options or self._defaults

        try:
            data = await self._load_with_retry(entry.key, loader, options)
        except asyncio.CancelledError:
            entry.invalidated = True
            if entry.has_data or entry.observers > 0:
                self._set_status(entry, CacheStatus.STALE)
            elif self._entries.get(entry.key) is entry:
                del self._entries[entry.key]
            raise
        except Exception as exc:
            self._record_failure(entry, exc, options)
            raise
        finally:
            entry.in_flight = None

        self._store(entry, data, stale=entry.invalidations != started_under)
        if entry.invalidated and entry.observers > 0 and self._entries.get(entry.key) is entry:
            self._start_load(entry, entry.loader or loader)
        return data

    async def _load_with_retry(self, key: QueryKey, loader: Loader, options: QueryOptions) -> Any:
        attempt = 0
        while True:
            try:
                return await self._call(loader, options)
            except Exception as exc:
                if attempt >= options.retry or not is_retryable(exc):
                    raise
                delay = (options.retry_delay or self._default_delay)(attempt)
                attempt += 1
                log.info(
                    "cache_load_retry",
                    key=key,
                    attempt=attempt,
                    max_retries=options.retry,
                    delay=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)

    @staticmethod
    async def _call(loader: Loader, options: QueryOptions) -> Any:
        if options.timeout is None:
            return await loader()
        try:
            return await asyncio.wait_for(loader(), options.timeout)
        except TimeoutError as exc:
            raise NetworkError(f"Query timed out after {options.timeout}s") from exc

    def _store(self, entry: CacheEntry, data: Any, *, stale: bool) -> None:
        options = entry.options or self._defaults
        now = self._clock()
        entry.data = data
        entry.has_data = True
        entry.error = None
        entry.fetched_at = now
        entry.stale_at = now + options.stale_time
        entry.gc_at = now + options.gc_time
        entry.invalidated = stale
        entry.status = CacheStatus.STALE if stale else CacheStatus.FRESH
        self._notify(entry)

    def _record_failure(self, entry: CacheEntry, exc: Exception, options: QueryOptions) -> None:
        log.warning("cache_load_failed", key=entry.key, error=str(exc), has_data=entry.has_data)
        entry.error = exc
        if not entry.has_data:
            entry.gc_at = self._clock() + options.gc_time
        entry.status = CacheStatus.ERROR
        self._notify(entry)

    def _set_status(self, entry: CacheEntry, status: CacheStatus) -> None:
        if entry.status is status:
            return
        entry.status = status
        self._notify(entry)

    def _notify(self, entry: CacheEntry) -> None:
        for listener in list(entry.listeners):
            try:
                listener(entry)
            except Exception:
                log.error("cache_listener_error", key=entry.key, exc_info=True)
