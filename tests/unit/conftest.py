"""Unit-specific fixtures (no real network; HTTP is mocked with respx)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from release_tracker.client import ReleaseTrackerClient
from release_tracker.models.cache import QueryOptions
from release_tracker.query_cache import QueryCache
from tests.helpers import BASE_URL

if TYPE_CHECKING:
    from tests.helpers import FakeClock


@pytest.fixture()
def cache(clock: FakeClock) -> QueryCache:
    """Cache on a fake clock with instant retries."""
    defaults = QueryOptions(stale_time=10.0, gc_time=100.0, retry=2, retry_delay=lambda _: 0.0)
    return QueryCache(defaults, clock=clock)


@pytest.fixture()
async def api():
    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        yield ReleaseTrackerClient(http_client)
