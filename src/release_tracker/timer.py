from __future__ import annotations

import asyncio
from collections.abc import Callable


class CancellableTimer:
    """Single-shot timer on the running event loop.

    ``start`` replaces any pending callback, so calling it on every input
    change gives a debounce: the callback fires once the input has been quiet
    for ``delay`` seconds.
    """

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()
