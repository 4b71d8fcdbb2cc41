"""Integration test fixtures.

Provides a fully wired AppState built by ``open_app_state`` on top of an
httpx client whose transport is intercepted by a respx router. The health
route answers 200 by default; tests re-mock it to simulate outages.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from release_tracker.config import ApiSettings, QuerySettings, SearchSettings, Settings
from release_tracker.state import AppState, open_app_state
from tests.helpers import BASE_URL


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        api=ApiSettings(base_url=BASE_URL, timeout_seconds=5.0),
        query=QuerySettings(retry_base_delay_seconds=0.0, retry_max_delay_seconds=0.0),
        search=SearchSettings(debounce_seconds=0.01),
    )


@pytest.fixture()
def backend():
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture()
def health_route(backend: respx.MockRouter) -> respx.Route:
    return backend.get("/health", name="health").mock(
        return_value=httpx.Response(200, json={"status": "ok"})
    )


@pytest.fixture()
async def app_state(settings: Settings, health_route: respx.Route) -> AppState:
    async with (
        httpx.AsyncClient(base_url=BASE_URL) as http_client,
        open_app_state(settings, http_client=http_client) as state,
    ):
        yield state
