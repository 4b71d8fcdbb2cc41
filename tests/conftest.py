"""Shared fixtures: sample payloads, a controllable clock and health stubs."""

from __future__ import annotations

from typing import Any

import pytest

from release_tracker.health import ConnectionMonitor
from tests.helpers import FakeClock, StubHealth


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def connected_monitor() -> ConnectionMonitor:
    monitor = ConnectionMonitor(StubHealth(healthy=True))
    await monitor.probe()
    return monitor


@pytest.fixture()
async def disconnected_monitor() -> ConnectionMonitor:
    monitor = ConnectionMonitor(StubHealth(healthy=False))
    await monitor.probe()
    return monitor


@pytest.fixture()
def artist_payload() -> dict[str, Any]:
    return {
        "id": "a1",
        "name": "Radiohead",
        "mbid": "a74b1b7f-71a5-4011-9441-d0b5e4122711",
        "followed_at": "2024-01-15T10:30:00.000Z",
        "latest_release_date": "2016-05-08",
        "total_releases": "12",
        "new_releases": "1",
    }


@pytest.fixture()
def release_payloads() -> list[dict[str, Any]]:
    return [
        {
            "id": "r1",
            "artist_id": "a1",
            "artist_name": "Radiohead",
            "title": "A Moon Shaped Pool",
            "mbid": None,
            "release_date": "2016-05-08",
            "release_type": "Album",
            "track_count": 11,
            "is_new": True,
            "discovered_at": "2024-02-01T08:00:00.000Z",
        },
        {
            "id": "r2",
            "artist_id": "a1",
            "artist_name": "Radiohead",
            "title": "Burn the Witch",
            "mbid": None,
            "release_date": "2016-05-03T00:00:00.000Z",
            "release_type": "Single",
            "track_count": 1,
            "is_new": False,
            "discovered_at": "2024-02-01T08:00:00.000Z",
        },
        {
            "id": "r3",
            "artist_id": "a1",
            "artist_name": "Radiohead",
            "title": "Daydreaming",
            "mbid": None,
            "release_date": "2016-06",
            "release_type": "single",
            "track_count": 1,
            "is_new": True,
            "discovered_at": "2024-02-01T08:00:00.000Z",
        },
    ]
