"""Write operations against the backend.

Mutations are never retried and never cached. Each one reports a
``MutationOutcome`` (``success``, ``conflict`` or ``failure``) instead of
raising, and invalidates the query keys it affects on success. Concurrent
submissions for the same identity share one request.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from release_tracker.errors import (
    ConflictError,
    NetworkError,
    ReleaseTrackerError,
    ServerError,
)
from release_tracker.models.artist import ArtistIdentity
from release_tracker.models.outcomes import FollowOutcome, MutationOutcome, OutcomeKind
from release_tracker.queries import QueryKeys

if TYPE_CHECKING:
    from release_tracker.client import ReleaseTrackerClient
    from release_tracker.health import ConnectionMonitor
    from release_tracker.models.cache import QueryKey
    from release_tracker.query_cache import QueryCache

log = structlog.get_logger()

OutcomeT = TypeVar("OutcomeT", bound=MutationOutcome)

GENERIC_FAILURE = "Something went wrong. Please try again."
DISCONNECTED_FAILURE = "Not connected to the backend."
ALREADY_FOLLOWED = "You are already following this artist."


def failure_message(exc: ReleaseTrackerError) -> str:
    """User-facing text for a failed mutation."""
    if isinstance(exc, (NetworkError, ServerError)):
        return GENERIC_FAILURE
    # 4xx: the server's own message is the most useful thing to show
    return exc.message or GENERIC_FAILURE


class MutationCoordinator:
    def __init__(
        self,
        client: ReleaseTrackerClient,
        cache: QueryCache,
        monitor: ConnectionMonitor,
    ) -> None:
        self._client = client
        self._cache = cache
        self._monitor = monitor
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    def is_follow_pending(self, identity: ArtistIdentity) -> bool:
        return f"follow:{identity.key}" in self._in_flight

    async def _coalesce(self, identity: str, run: Callable[[], Awaitable[OutcomeT]]) -> OutcomeT:
        task = self._in_flight.get(identity)
        if task is None:
            task = asyncio.create_task(run(), name=f"mutation:{identity}")
            self._in_flight[identity] = task
            task.add_done_callback(lambda _: self._in_flight.pop(identity, None))
        else:
            log.debug("mutation_coalesced", identity=identity)
        return await asyncio.shield(task)

    async def _invalidate(self, prefixes: Iterable[QueryKey]) -> None:
        for prefix in prefixes:
            await self._cache.invalidate(prefix)

    async def _perform(
        self,
        identity: str,
        request: Callable[[], Awaitable[Any]],
        invalidates: tuple[QueryKey, ...],
        success_message: str,
    ) -> MutationOutcome:
        async def run() -> MutationOutcome:
            if not self._monitor.is_connected:
                log.info("mutation_skipped", identity=identity, reason="disconnected")
                return MutationOutcome(kind=OutcomeKind.FAILURE, message=DISCONNECTED_FAILURE)
            try:
                data = await request()
            except ReleaseTrackerError as exc:
                log.warning("mutation_failed", identity=identity, code=str(exc.code))
                return MutationOutcome(kind=OutcomeKind.FAILURE, message=failure_message(exc))
            await self._invalidate(invalidates)
            return MutationOutcome(kind=OutcomeKind.SUCCESS, message=success_message, data=data)

        return await self._coalesce(identity, run)

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def add_artist(self, identity: ArtistIdentity) -> FollowOutcome:
        """Follow an artist.

        ``conflict`` means the artist is already followed; ``failure`` covers
        everything else (network, validation, server fault).
        """

        async def run() -> FollowOutcome:
            if not self._monitor.is_connected:
                log.info("follow_skipped", identity=identity.key, reason="disconnected")
                return FollowOutcome(kind=OutcomeKind.FAILURE, message=DISCONNECTED_FAILURE)
            try:
                artist = await self._client.add_artist(identity)
            except ConflictError:
                log.info("follow_conflict", identity=identity.key)
                return FollowOutcome(kind=OutcomeKind.CONFLICT, message=ALREADY_FOLLOWED)
            except ReleaseTrackerError as exc:
                log.warning("follow_failed", identity=identity.key, code=str(exc.code))
                return FollowOutcome(kind=OutcomeKind.FAILURE, message=failure_message(exc))

            log.info("follow_succeeded", identity=identity.key, artist_id=artist.id)
            await self._invalidate([QueryKeys.ARTISTS])
            return FollowOutcome(
                kind=OutcomeKind.SUCCESS,
                message=f"Now following {artist.name}.",
                artist=artist,
                data=artist,
            )

        return await self._coalesce(f"follow:{identity.key}", run)

    async def follow(self, name: str, external_id: str | None = None) -> FollowOutcome:
        return await self.add_artist(ArtistIdentity(name=name, external_id=external_id))

    async def add_artists(self, identities: Iterable[ArtistIdentity]) -> MutationOutcome:
        identities = list(identities)
        keys = ",".join(sorted(identity.key for identity in identities))
        return await self._perform(
            f"bulk:{keys}",
            lambda: self._client.bulk_add_artists(identities),
            (QueryKeys.ARTISTS,),
            f"Added {len(identities)} artists.",
        )

    async def remove_artist(self, artist_id: str) -> MutationOutcome:
        return await self._perform(
            f"unfollow:{artist_id}",
            lambda: self._client.remove_artist(artist_id),
            (QueryKeys.ARTISTS, QueryKeys.RELEASES),
            "Artist removed.",
        )

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def mark_listened(self, release_id: str) -> MutationOutcome:
        return await self._perform(
            f"listened:{release_id}",
            lambda: self._client.mark_listened(release_id),
            (QueryKeys.RELEASES,),
            "Marked as listened.",
        )

    async def mark_read(self, release_id: str) -> MutationOutcome:
        return await self._perform(
            f"read:{release_id}",
            lambda: self._client.mark_read(release_id),
            (QueryKeys.RELEASES,),
            "Marked as read.",
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def trigger_sync(self) -> MutationOutcome:
        return await self._perform(
            "sync",
            self._client.trigger_sync,
            (QueryKeys.RELEASES, QueryKeys.SYNC),
            "Sync started.",
        )
