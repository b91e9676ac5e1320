"""
Timer scheduling for deferred turn actions.

The executor only needs "run this callback after N milliseconds" on the
thread that owns the session. Two implementations:

- ManualScheduler: a virtual clock advanced explicitly (headless matches, tests)
- AsyncioScheduler: wraps an asyncio event loop's call_later
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class Scheduler(Protocol):
    """Timer-delayed callbacks on the session's owning context."""

    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None: ...


class ManualScheduler:
    """
    Deterministic scheduler driven by advance().

    Callbacks due at the same time run in the order they were scheduled.
    A callback may schedule further callbacks; those run within the same
    advance() call if they fall due before its end.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now_ms

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        due = self._now_ms + max(0.0, delay_ms)
        heapq.heappush(self._queue, (due, next(self._seq), callback))

    @property
    def pending(self) -> int:
        """Number of callbacks not yet run."""
        return len(self._queue)

    def advance(self, delta_ms: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        end = self._now_ms + max(0.0, delta_ms)
        while self._queue and self._queue[0][0] <= end:
            due, _, callback = heapq.heappop(self._queue)
            self._now_ms = max(self._now_ms, due)
            callback()
        self._now_ms = end

    def run_all(self, limit: int = 10_000) -> None:
        """Run callbacks until the queue is empty (at most limit of them)."""
        for _ in range(limit):
            if not self._queue:
                return
            due, _, callback = heapq.heappop(self._queue)
            self._now_ms = max(self._now_ms, due)
            callback()
        raise RuntimeError(f"Scheduler still busy after {limit} callbacks")


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        self.loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
