"""Backend liveness tracking.

The monitor starts ``unknown`` and moves to ``connected`` or ``disconnected``
on each probe. Every other component asks it before touching the network:
while it is not ``connected`` they do nothing and the UI shows connection
guidance instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import structlog

from release_tracker.errors import BackendUnavailableError, ReleaseTrackerError

log = structlog.get_logger()


class ConnectionState(StrEnum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class HealthCheck(Protocol):
    async def health(self) -> Any: ...


class ConnectionMonitor:
    def __init__(self, client: HealthCheck) -> None:
        self._client = client
        self._state = ConnectionState.UNKNOWN
        self._probe_task: asyncio.Task[ConnectionState] | None = None
        self._listeners: list[Callable[[ConnectionState], None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def require_connected(self) -> None:
        """Raise ``BackendUnavailableError`` unless the last probe succeeded."""
        if not self.is_connected:
            raise BackendUnavailableError(f"Backend is {self._state}; run a health probe first")

    def on_change(self, listener: Callable[[ConnectionState], None]) -> None:
        self._listeners.append(listener)

    async def probe(self) -> ConnectionState:
        """Check liveness. Never raises: any failure means ``disconnected``.

        Concurrent callers share the probe already in flight.
        """
        if self._probe_task is None:
            self._probe_task = asyncio.create_task(self._probe())
        return await asyncio.shield(self._probe_task)

    async def _probe(self) -> ConnectionState:
        try:
            await self._client.health()
        except ReleaseTrackerError as exc:
            log.warning("health_probe_failed", code=str(exc.code), error=exc.message)
            new_state = ConnectionState.DISCONNECTED
        except Exception:
            log.error("health_probe_error", exc_info=True)
            new_state = ConnectionState.DISCONNECTED
        else:
            new_state = ConnectionState.CONNECTED
        finally:
            self._probe_task = None

        self._transition(new_state)
        return new_state

    def _transition(self, new_state: ConnectionState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state is new_state:
            return
        log.info("connection_state_changed", old=str(old_state), new=str(new_state))
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                log.error("connection_listener_error", exc_info=True)
