"""Unit tests for release_tracker.health."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from release_tracker.client import ReleaseTrackerClient
from release_tracker.errors import BackendUnavailableError, ServerError
from release_tracker.health import ConnectionMonitor, ConnectionState
from tests.helpers import BASE_URL, StubHealth


class SlowHealth:
    def __init__(self) -> None:
        self.calls = 0
        self.release = asyncio.Event()

    async def health(self) -> dict[str, str]:
        self.calls += 1
        await self.release.wait()
        return {"status": "ok"}


class TestConnectionMonitor:
    def test_starts_unknown_and_closed(self) -> None:
        monitor = ConnectionMonitor(StubHealth())
        assert monitor.state is ConnectionState.UNKNOWN
        assert monitor.is_connected is False
        with pytest.raises(BackendUnavailableError):
            monitor.require_connected()

    async def test_healthy_probe_connects(self) -> None:
        monitor = ConnectionMonitor(StubHealth(healthy=True))
        assert await monitor.probe() is ConnectionState.CONNECTED
        assert monitor.is_connected
        monitor.require_connected()

    async def test_failed_probe_disconnects_without_raising(self) -> None:
        monitor = ConnectionMonitor(StubHealth(healthy=False))
        assert await monitor.probe() is ConnectionState.DISCONNECTED
        with pytest.raises(BackendUnavailableError, match="disconnected"):
            monitor.require_connected()

    async def test_server_error_counts_as_disconnected(self) -> None:
        class Broken:
            async def health(self) -> None:
                raise ServerError("HTTP 503 from /health", status_code=503)

        monitor = ConnectionMonitor(Broken())
        assert await monitor.probe() is ConnectionState.DISCONNECTED

    async def test_unexpected_exception_counts_as_disconnected(self) -> None:
        class Crashing:
            async def health(self) -> None:
                raise RuntimeError("Cannot send a request, as the client has been closed.")

        monitor = ConnectionMonitor(Crashing())
        assert await monitor.probe() is ConnectionState.DISCONNECTED
        assert not monitor.is_connected

    async def test_closed_http_client_counts_as_disconnected(self) -> None:
        http_client = httpx.AsyncClient(base_url=BASE_URL)
        await http_client.aclose()
        monitor = ConnectionMonitor(ReleaseTrackerClient(http_client))
        assert await monitor.probe() is ConnectionState.DISCONNECTED

    async def test_reconnect_after_backend_recovers(self) -> None:
        health = StubHealth(healthy=False)
        monitor = ConnectionMonitor(health)
        await monitor.probe()
        health.healthy = True
        assert await monitor.probe() is ConnectionState.CONNECTED
        assert health.calls == 2

    async def test_concurrent_probes_share_one_call(self) -> None:
        health = SlowHealth()
        monitor = ConnectionMonitor(health)

        probes = [asyncio.create_task(monitor.probe()) for _ in range(3)]
        await asyncio.sleep(0)
        health.release.set()
        results = await asyncio.gather(*probes)

        assert results == [ConnectionState.CONNECTED] * 3
        assert health.calls == 1

    async def test_listeners_fire_only_on_change(self) -> None:
        health = StubHealth(healthy=True)
        monitor = ConnectionMonitor(health)
        seen: list[ConnectionState] = []
        monitor.on_change(seen.append)

        await monitor.probe()
        await monitor.probe()
        health.healthy = False
        await monitor.probe()

        assert seen == [ConnectionState.CONNECTED, ConnectionState.DISCONNECTED]

    async def test_failing_listener_does_not_break_probe(self) -> None:
        monitor = ConnectionMonitor(StubHealth(healthy=True))

        def boom(_: ConnectionState) -> None:
            raise RuntimeError("listener bug")

        seen: list[ConnectionState] = []
        monitor.on_change(boom)
        monitor.on_change(seen.append)

        assert await monitor.probe() is ConnectionState.CONNECTED
        assert seen == [ConnectionState.CONNECTED]
