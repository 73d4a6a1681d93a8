"""Suspension detection via clock polling.

The monotonic clock stops while the machine is suspended and wall-clock
time does not, so a jump between the two after a poll means the system
slept in between.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Final

from oledcare.protocols import TimerService

logger: Final = logging.getLogger(__name__)


class ClockJumpSleepMonitor:
    """Reports suspend/resume as ``PrepareForSleep`` notifications.

    The suspend is only noticed after the fact, so a detected jump is
    delivered as ``callback(True)`` immediately followed by
    ``callback(False)``.

    Attributes:
        poll_seconds: How often to compare the clocks
        threshold_seconds: Minimum wall-clock jump treated as a suspend
    """

    def __init__(
        self,
        timers: TimerService,
        poll_seconds: float = 5.0,
        threshold_seconds: float = 30.0,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.timers = timers
        self.poll_seconds = poll_seconds
        self.threshold_seconds = threshold_seconds
        self.monotonic = monotonic
        self.wall_clock = wall_clock

        self._callback: Callable[[bool], None] | None = None
        self._handle: Any = None
        self._last_monotonic = 0.0
        self._last_wall = 0.0

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: Callable[[bool], None]) -> None:
        self.stop()
        self._callback = callback
        self._last_monotonic = self.monotonic()
        self._last_wall = self.wall_clock()
        self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self.timers.cancel(self._handle)
            self._handle = None
        self._callback = None

    def _schedule(self) -> None:
        self._handle = self.timers.after(int(self.poll_seconds * 1000), self._poll)

    def _poll(self) -> None:
        self._handle = None
        callback = self._callback
        if callback is None:
            return

        current_mono = self.monotonic()
        current_wall = self.wall_clock()
        expected_wall = self._last_wall + (current_mono - self._last_monotonic)
        jump = current_wall - expected_wall

        self._last_monotonic = current_mono
        self._last_wall = current_wall

        if jump > self.threshold_seconds:
            logger.info("Detected system sleep of about %d s", int(jump))
            try:
                callback(True)
                callback(False)
            except Exception as exc:
                logger.error("Sleep handler failed: %s", exc)

        if self._callback is not None:
            self._schedule()
