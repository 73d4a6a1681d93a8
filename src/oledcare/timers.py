"""Timer services driving the scheduler and the phase sequencer."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

logger: Final = logging.getLogger(__name__)


class AsyncioTimerService:
    """TimerService backed by an asyncio event loop.

    All callbacks run on the loop thread, so the engine stays
    single-threaded.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def after(self, duration_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0, duration_ms) / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def monotonic(self) -> float:
        return self.loop.time()


@dataclass(order=True)
class _PendingTimer:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualTimerService:
    """TimerService with a virtual clock advanced explicitly.

    Callbacks fire in due-time order, ties in scheduling order, with the
    clock set to each timer's due time while it runs. Used by tests and
    by the offline preview.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[_PendingTimer] = []
        self._seq = itertools.count()

    def monotonic(self) -> float:
        return self._now

    def after(self, duration_ms: int, callback: Callable[[], None]) -> _PendingTimer:
        timer = _PendingTimer(self._now + max(0, duration_ms) / 1000, next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    def cancel(self, handle: _PendingTimer | None) -> None:
        if handle is not None:
            handle.cancelled = True

    @property
    def pending(self) -> int:
        """Number of timers still waiting to fire."""
        return sum(1 for timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that becomes due.

        Returns:
            Number of callbacks fired
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = max(self._now, timer.due)
            timer.cancelled = True
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: float = 86400.0) -> int:
        """Fire timers until none remain or ``limit`` seconds have passed."""
        deadline = self._now + limit
        fired = 0
        while self.pending and self._now < deadline:
            next_due = min(t.due for t in self._queue if not t.cancelled)
            fired += self.advance(max(0.0, min(next_due, deadline) - self._now))
        return fired
