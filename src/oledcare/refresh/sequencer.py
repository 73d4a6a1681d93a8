"""Phase sequencer driving one refresh routine.

The sequencer walks the phase table, maps wall-clock time to overall
progress, and drives the renderer. Each tick is a single timer callback
guarded by the run's cancellation token; nothing re-enters the loop
directly, so a cancelled run never produces another frame.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Final, cast

from oledcare.protocols import Renderer, TimerService
from oledcare.refresh.errors import OperationError, PixelRefreshError, SchedulingError
from oledcare.refresh.events import EventHub
from oledcare.refresh.phases import Phase, PhaseKind, PhaseTable, SweepDirection, duration_for_speed
from oledcare.refresh.session import RefreshSession, SessionStatus
from oledcare.settings.refresh import DEFAULT_SPEED

logger: Final = logging.getLogger(__name__)

# Tick cadence: coarse for solid fills, animation rate for the sweep bar
SOLID_TICK_MS: Final = 250
SWEEP_TICK_MS: Final = 33

FinishedCallback = Callable[[SessionStatus], None]


class CancellationToken:
    """Cooperative cancellation flag for a single run."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


def local_start_fraction(progress: float, phase_start: float, weight: float) -> float:
    """Fraction of a phase already completed when resuming at ``progress``.

    Returns 0.0 when ``progress`` is at or before the phase start.
    """
    if progress <= phase_start:
        return 0.0
    return min(1.0, (progress - phase_start) / weight)


class PhaseSequencer:
    """Runs the weighted phase table against a renderer.

    Progress accounting is independent of tick frequency: every tick
    recomputes the phase-local progress from elapsed time, so dropped or
    delayed ticks only reduce visual smoothness.
    """

    def __init__(
        self,
        session: RefreshSession,
        renderer: Renderer,
        timers: TimerService,
        events: EventHub,
        phases: PhaseTable | None = None,
        clock: Callable[[], float] | None = None,
        on_finished: FinishedCallback | None = None,
        solid_tick_ms: int = SOLID_TICK_MS,
        sweep_tick_ms: int = SWEEP_TICK_MS,
    ) -> None:
        self.session = session
        self.renderer = renderer
        self.timers = timers
        self.events = events
        self.phases = phases or PhaseTable()
        self.clock = clock or time.monotonic
        self.on_finished = on_finished
        self.solid_tick_ms = solid_tick_ms
        self.sweep_tick_ms = sweep_tick_ms

        self._token: CancellationToken | None = None
        self._tick_handle: Any = None
        self._overlay_open = False

        # Per-phase accounting, reset on every phase entry
        self._phase_start = 0.0
        self._phase_end = 0.0
        self._local_start = 0.0
        self._remaining = 0.0
        self._phase_started_at = 0.0

    # ── public API ────────────────────────────────────────────────────────
    @property
    def local_start(self) -> float:
        """Local start fraction of the current phase."""
        return self._local_start

    def start(self, initial_progress: float = 0.0, speed: int = DEFAULT_SPEED) -> bool:
        """Begin a run, optionally from a saved progress value.

        Args:
            initial_progress: Overall progress to resume from (clamped to [0, 1])
            speed: Speed setting used to look up the total duration

        Returns:
            True if the run started, False if one is already running, the
            overlay could not be created or the first tick could not be scheduled
        """
        if self.session.running:
            logger.debug("Refresh already running, ignoring start request")
            return False

        progress = min(1.0, max(0.0, initial_progress))
        token = CancellationToken()
        self._token = token

        session = self.session
        session.status = SessionStatus.RUNNING
        session.progress = progress
        session.current_phase_index = self.phases.phase_index_for_progress(progress)
        session.start_timestamp = self.clock()
        session.total_duration_seconds = duration_for_speed(speed)

        logger.info(
            "Starting pixel refresh at %.0f%% (phase %d, %ds total)",
            progress * 100,
            session.current_phase_index,
            session.total_duration_seconds,
        )
        self.events.on_status_change(SessionStatus.RUNNING)

        try:
            self.renderer.begin_overlay()
            self._overlay_open = True
        except Exception as exc:
            self._fail(OperationError.from_exception("begin_overlay", exc))
            return False

        try:
            self._enter_phase(session.current_phase_index, token)
        except SchedulingError as err:
            self._fail(err)
            return False
        return True

    def cancel(self, interrupted: bool = False) -> bool:
        """Stop the active run and tear the overlay down.

        Args:
            interrupted: Report the run as INTERRUPTED (progress was saved)

        Returns:
            True if a run was stopped
        """
        if not self.session.running:
            return False

        logger.info(
            "Cancelling pixel refresh at %.0f%%%s",
            self.session.progress * 100,
            " (saved)" if interrupted else "",
        )
        self._stop_ticking()
        self._teardown_overlay()

        outcome = SessionStatus.INTERRUPTED if interrupted else SessionStatus.IDLE
        if interrupted:
            self.events.on_status_change(SessionStatus.INTERRUPTED)
        self.session.reset(SessionStatus.IDLE)
        self.events.on_status_change(SessionStatus.IDLE)
        self._notify_finished(outcome)
        return True

    def close(self) -> None:
        """Stop ticking and release the overlay. Safe to call repeatedly."""
        self._stop_ticking()
        self._teardown_overlay()

    # ── phase loop ────────────────────────────────────────────────────────
    def _enter_phase(self, index: int, token: CancellationToken) -> None:
        phase = self.phases[index]
        start, end = self.phases.bounds(index)
        total = self.session.total_duration_seconds

        self.session.current_phase_index = index
        self._phase_start = start
        self._phase_end = end
        self._local_start = local_start_fraction(self.session.progress, start, phase.weight)
        self._remaining = phase.weight * total * (1.0 - self._local_start)
        self._phase_started_at = self.clock()

        logger.debug(
            "Phase %d (%s) [%.2f, %.2f) local start %.3f, %.1fs remaining",
            index,
            phase.name,
            start,
            end,
            self._local_start,
            self._remaining,
        )
        self._schedule_tick(0, token)

    def _schedule_tick(self, delay_ms: int, token: CancellationToken) -> None:
        try:
            self._tick_handle = self.timers.after(delay_ms, lambda: self._tick(token))
        except Exception as exc:
            self._tick_handle = None
            raise SchedulingError("Failed to schedule refresh tick", exc) from exc

    def _tick(self, token: CancellationToken) -> None:
        self._tick_handle = None
        if token.cancelled or token is not self._token:
            return

        index = self.session.current_phase_index
        phase = self.phases[index]

        elapsed = self.clock() - self._phase_started_at
        fraction = 1.0 if self._remaining <= 0 else min(1.0, elapsed / self._remaining)
        local = self._local_start + (1.0 - self._local_start) * fraction

        try:
            self._render(phase, local)
        except OperationError as err:
            self._fail(err)
            return

        if token.cancelled:
            return

        try:
            self._advance(phase, elapsed, local, token)
        except SchedulingError as err:
            self._fail(err)

    def _advance(
        self, phase: Phase, elapsed: float, local: float, token: CancellationToken
    ) -> None:
        index = self.session.current_phase_index
        if elapsed < self._remaining:
            self._set_progress(self._phase_start + local * (self._phase_end - self._phase_start))
            if not token.cancelled:
                self._schedule_tick(self._cadence(phase), token)
            return

        self._set_progress(self._phase_end)
        if token.cancelled:
            return

        if index + 1 >= len(self.phases):
            self._complete()
        else:
            self._enter_phase(index + 1, token)

    def _render(self, phase: Phase, local: float) -> None:
        try:
            if phase.kind is PhaseKind.SOLID:
                self.renderer.set_solid_color(phase.payload)  # type: ignore[arg-type]
            else:
                direction = cast(SweepDirection, phase.payload)
                self.renderer.position_sweep_bar(phase.sweep_position(local), direction)
        except Exception as exc:
            raise OperationError.from_exception(f"render {phase.name}", exc) from exc

    def _cadence(self, phase: Phase) -> int:
        return self.sweep_tick_ms if phase.kind is PhaseKind.SWEEP else self.solid_tick_ms

    def _set_progress(self, value: float) -> None:
        value = min(1.0, value)
        if value <= self.session.progress:
            return
        self.session.progress = value
        self.events.on_progress(value)

    # ── run endings ───────────────────────────────────────────────────────
    def _complete(self) -> None:
        logger.info("Pixel refresh complete")
        self._stop_ticking()
        self._teardown_overlay()
        self.session.progress = 1.0
        self.events.on_status_change(SessionStatus.COMPLETED)
        self.session.reset(SessionStatus.IDLE)
        self.events.on_status_change(SessionStatus.IDLE)
        self._notify_finished(SessionStatus.COMPLETED)

    def _fail(self, error: PixelRefreshError) -> None:
        logger.error("Pixel refresh aborted: %s", error.message)
        self._stop_ticking()
        self._teardown_overlay()
        self.session.status = SessionStatus.ERROR
        self.events.on_status_change(SessionStatus.ERROR)
        self.events.on_error(error)
        self.session.reset(SessionStatus.IDLE)
        self.events.on_status_change(SessionStatus.IDLE)
        self._notify_finished(SessionStatus.ERROR)

    def _stop_ticking(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._tick_handle is not None:
            self.timers.cancel(self._tick_handle)
            self._tick_handle = None

    def _teardown_overlay(self) -> None:
        if not self._overlay_open:
            return
        self._overlay_open = False
        try:
            self.renderer.end_overlay()
        except Exception as exc:
            logger.warning("Failed to tear down refresh overlay: %s", exc)

    def _notify_finished(self, outcome: SessionStatus) -> None:
        if self.on_finished is None:
            return
        try:
            self.on_finished(outcome)
        except Exception as exc:
            logger.error("Run-finished handler failed: %s", exc)
