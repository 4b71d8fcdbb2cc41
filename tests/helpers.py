"""Test doubles shared across unit and integration tests."""

from __future__ import annotations

from release_tracker.errors import NetworkError

BASE_URL = "http://tracker.test"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubHealth:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.calls = 0

    async def health(self) -> dict[str, str]:
        self.calls += 1
        if not self.healthy:
            raise NetworkError("Connection refused")
        return {"status": "ok"}
