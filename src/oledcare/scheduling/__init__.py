"""Scheduler package for the pixel refresh engine."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Final

from oledcare.protocols import EnvironmentConditions, TimerService
from oledcare.refresh.errors import SchedulingError
from oledcare.refresh.events import EventHub
from oledcare.refresh.sequencer import PhaseSequencer
from oledcare.refresh.session import InterruptedStateStore, RefreshSession
from oledcare.scheduling.windows import in_schedule_window, matching_window
from oledcare.settings.refresh import RefreshConfig
from oledcare.utils.time import TimeUtils

logger: Final = logging.getLogger(__name__)

NextRunCallback = Callable[[datetime | None], None]


class Scheduler:
    """Decides when a refresh may run and owns the repeating timer.

    Controls when the engine should:
    - Fire every ``interval_minutes``
    - Respect fixed ``HH:MM`` schedule windows (wrapping past midnight)
    - Hold off in smart mode while the user is active or a fullscreen or
      critical application is in front
    - Start manual runs and cancel active ones

    Only one timer is ever installed; ``start`` always cancels the
    previous one first.
    """

    def __init__(
        self,
        config_provider: Callable[[], RefreshConfig],
        session: RefreshSession,
        sequencer: PhaseSequencer,
        interrupted: InterruptedStateStore,
        timers: TimerService,
        events: EventHub,
        conditions: EnvironmentConditions | None = None,
        now: Callable[[], datetime] | None = None,
        on_next_run: NextRunCallback | None = None,
    ) -> None:
        self.config_provider = config_provider
        self.session = session
        self.sequencer = sequencer
        self.interrupted = interrupted
        self.timers = timers
        self.events = events
        self.conditions = conditions
        self.now = now or TimeUtils.now_localized
        self.on_next_run = on_next_run

        self._handle: Any = None
        self._armed_at: datetime | None = None
        self._interval_minutes = 0
        self._last_config: RefreshConfig | None = None

    @property
    def active(self) -> bool:
        """Whether the repeating timer is installed."""
        return self._handle is not None

    # ── timer ─────────────────────────────────────────────────────────────
    def start(self) -> bool:
        """(Re)install the repeating timer.

        Returns:
            True if the timer is installed, False if disabled or the timer
            could not be created
        """
        self.stop()
        config = self._read_config()
        if not config.enabled:
            logger.debug("Pixel refresh disabled → scheduler not started")
            self._publish_next_run(None)
            return False
        return self._arm(config)

    def stop(self) -> None:
        """Cancel the repeating timer if installed."""
        if self._handle is None:
            return
        self.timers.cancel(self._handle)
        self._handle = None
        self._armed_at = None
        logger.debug("Scheduler stopped")

    def _arm(self, config: RefreshConfig) -> bool:
        try:
            self._handle = self.timers.after(config.interval_seconds * 1000, self._on_timer)
        except Exception as exc:
            self._handle = None
            self._armed_at = None
            error = SchedulingError("Failed to install scheduler timer", exc)
            logger.error("%s: %s", error.message, exc)
            self.events.on_error(error)
            self._publish_next_run(None)
            return False

        self._armed_at = self.now()
        self._interval_minutes = config.interval_minutes
        logger.info("Scheduler armed with %d minute interval", config.interval_minutes)
        self.refresh_next_run()
        return True

    def _on_timer(self) -> None:
        self._handle = None
        config = self._read_config()
        try:
            if self.should_run(config):
                self.sequencer.start(0.0, config.speed)
        finally:
            if config.enabled:
                self._arm(config)

    # ── eligibility ───────────────────────────────────────────────────────
    def should_run(self, config: RefreshConfig | None = None) -> bool:
        """Check whether a scheduled run may start now."""
        config = config or self._read_config()

        if not config.enabled:
            logger.debug("Skipping refresh: disabled")
            return False

        if self.session.running:
            logger.debug("Skipping refresh: already running")
            return False

        now = self.now()
        if config.schedule and not in_schedule_window(
            now, config.schedule, config.interval_minutes
        ):
            logger.debug("Skipping refresh: %s outside schedule windows", now.strftime("%H:%M"))
            return False

        if config.smart_mode and not self._conditions_allow():
            return False

        window = matching_window(now, config.schedule, config.interval_minutes)
        logger.debug("Refresh eligible%s", f" (window {window})" if window else "")
        return True

    def _conditions_allow(self) -> bool:
        if self.conditions is None:
            logger.debug("Smart mode without a conditions source, allowing refresh")
            return True
        try:
            if self.conditions.has_fullscreen_critical_app():
                logger.debug("Skipping refresh: fullscreen or critical application running")
                return False
            if not self.conditions.is_idle():
                logger.debug("Skipping refresh: system not idle")
                return False
        except Exception as exc:
            logger.warning("Environment check failed, skipping refresh: %s", exc)
            return False
        return True

    # ── commands ──────────────────────────────────────────────────────────
    def run_manual(self) -> bool:
        """Start a run now, bypassing the enabled flag, schedule windows and smart mode."""
        config = self._read_config()
        if self.session.running:
            logger.info("Manual refresh ignored: refresh already running")
            return False
        logger.info("Running manual pixel refresh")
        return self.sequencer.start(0.0, config.speed)

    def cancel(self, save: bool) -> bool:
        """Stop the active run.

        Args:
            save: Persist the current progress so the run can resume later

        Returns:
            True if a run was stopped
        """
        if not self.session.running:
            return False
        if save:
            self.interrupted.save(self.session.progress)
        return self.sequencer.cancel(interrupted=save)

    # ── next run ──────────────────────────────────────────────────────────
    def next_run_time(self) -> datetime | None:
        """First upcoming timer fire that falls inside a schedule window.

        Smart-mode conditions are not predictable and are ignored.
        """
        if self._handle is None or self._armed_at is None:
            return None

        config = self._read_config()
        step = timedelta(minutes=self._interval_minutes)
        first = self._armed_at + step
        if not config.schedule:
            return first

        # A window is exactly one interval long, so one fire lands in each window
        for k in range(math.ceil(24 * 60 / self._interval_minutes) + 1):
            candidate = first + k * step
            if in_schedule_window(candidate, config.schedule, self._interval_minutes):
                return candidate
        return None

    def refresh_next_run(self) -> None:
        """Recompute the next run time and publish it."""
        self._publish_next_run(self.next_run_time())

    def _publish_next_run(self, when: datetime | None) -> None:
        if when is not None:
            logger.debug("Next refresh eligible at %s", when.strftime("%Y-%m-%d %H:%M"))
        if self.on_next_run is None:
            return
        try:
            self.on_next_run(when)
        except Exception as exc:
            logger.error("Next-run handler failed: %s", exc)

    def _read_config(self) -> RefreshConfig:
        try:
            self._last_config = self.config_provider()
        except Exception as exc:
            logger.warning("Unable to read refresh settings, using last known values: %s", exc)
        return self._last_config or RefreshConfig()
