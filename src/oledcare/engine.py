# filepath: src/oledcare/engine.py
"""Core controller for the OLED pixel refresh engine."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Final

from oledcare.protocols import EnvironmentConditions, Renderer, SleepSignal, TimerService
from oledcare.refresh.coordinator import SuspendResumeCoordinator
from oledcare.refresh.events import EventHub, RefreshListener
from oledcare.refresh.phases import PhaseTable
from oledcare.refresh.sequencer import PhaseSequencer
from oledcare.refresh.session import InterruptedStateStore, RefreshSession, SessionStatus
from oledcare.scheduling import Scheduler
from oledcare.settings.refresh import (
    KEY_ENABLED,
    KEY_INTERVAL,
    KEY_MANUAL_CANCEL,
    KEY_MANUAL_TRIGGER,
    KEY_SCHEDULE,
    KEY_SMART_MODE,
    KEY_SPEED,
    RefreshConfig,
)
from oledcare.settings.store import SettingsStore, load_refresh_config
from oledcare.status import StatusProjector

logger: Final = logging.getLogger(__name__)


class RefreshEngine:
    """Main controller for pixel refresh.

    This class wires the refresh components together:
    - Reading validated settings snapshots from the store
    - Scheduling runs and reacting to settings changes
    - Driving the phase sequencer against the renderer
    - Saving and resuming interrupted runs across sleep and restarts
    - Projecting status back into the store

    Collaborators are injected so tests can supply fakes. ``close()``
    tears everything down deterministically and may be called repeatedly.
    """

    def __init__(
        self,
        store: SettingsStore,
        renderer: Renderer,
        timers: TimerService,
        conditions: EnvironmentConditions | None = None,
        listeners: list[RefreshListener] | None = None,
        sleep_signal: SleepSignal | None = None,
        phases: PhaseTable | None = None,
        clock: Callable[[], float] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """Build the engine and resume any run left over from a previous process.

        Args:
            store: Persisted settings store
            renderer: Overlay renderer
            timers: One-shot timer service
            conditions: Environmental conditions used by smart mode
            listeners: Initial event listeners
            sleep_signal: Source of system sleep/resume notifications
            phases: Phase table (defaults to the standard seven phases)
            clock: Monotonic clock in seconds (defaults to ``time.monotonic``)
            now: Wall clock for schedule windows (defaults to local time)
        """
        self.store = store
        self.sleep_signal = sleep_signal
        self.events = EventHub(listeners)
        self.session = RefreshSession()
        self.interrupted = InterruptedStateStore(store)

        self.projector = StatusProjector(store, self.session)
        self.events.add(self.projector)

        self.sequencer = PhaseSequencer(
            self.session,
            renderer,
            timers,
            self.events,
            phases=phases,
            clock=clock or time.monotonic,
            on_finished=self._on_run_finished,
        )
        self.scheduler = Scheduler(
            self.config,
            self.session,
            self.sequencer,
            self.interrupted,
            timers,
            self.events,
            conditions=conditions,
            now=now,
            on_next_run=self.projector.set_next_run,
        )
        self.coordinator = SuspendResumeCoordinator(
            self.session,
            self.scheduler,
            self.interrupted,
            is_enabled=lambda: self.enabled,
            speed=lambda: self.config().speed,
        )

        self._closed = False
        self.enabled = False
        self._handler_id = store.connect(self._on_setting_changed)

        self._apply_enabled(self.config().enabled)
        if self.session.status is SessionStatus.IDLE:
            # Clears status left behind by a previous process
            self.events.on_status_change(SessionStatus.IDLE)

        if self.sleep_signal is not None:
            self.sleep_signal.start(self.on_prepare_for_sleep)

        # Resume a run interrupted by a crash or restart
        self.coordinator.resume_if_interrupted()

    # ── state ─────────────────────────────────────────────────────────────
    def config(self) -> RefreshConfig:
        """Fresh validated settings snapshot."""
        return load_refresh_config(self.store)

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: RefreshListener) -> None:
        self.events.add(listener)

    def remove_listener(self, listener: RefreshListener) -> None:
        self.events.remove(listener)

    # ── commands ──────────────────────────────────────────────────────────
    def run_manual(self) -> bool:
        """Start a refresh now if none is running."""
        if self._closed:
            return False
        return self.scheduler.run_manual()

    def cancel(self, save: bool = False) -> bool:
        """Stop the active refresh, optionally saving progress."""
        return self.scheduler.cancel(save)

    def on_prepare_for_sleep(self, about_to_sleep: bool) -> None:
        """Entry point for the system sleep signal."""
        if self._closed:
            return
        self.coordinator.on_prepare_for_sleep(about_to_sleep)

    def disable(self) -> None:
        """Stop scheduling and save any active run. Idempotent."""
        if not self.enabled and self.session.status is SessionStatus.DISABLED:
            return
        logger.info("Disabling pixel refresh")
        self.enabled = False
        if self.session.running:
            self.scheduler.cancel(save=True)
        self.scheduler.stop()
        if self.session.status is not SessionStatus.DISABLED:
            self.session.reset(SessionStatus.DISABLED)
            self.events.on_status_change(SessionStatus.DISABLED)

    def close(self) -> None:
        """Tear the engine down: save progress, cancel every timer, release the overlay."""
        if self._closed:
            return
        logger.debug("Closing refresh engine")
        self.disable()
        self.sequencer.close()
        if self.sleep_signal is not None:
            self.sleep_signal.stop()
        self.store.disconnect(self._handler_id)
        self.events.clear()
        self._closed = True

    # ── settings changes ──────────────────────────────────────────────────
    def _on_setting_changed(self, key: str) -> None:
        if self._closed:
            return

        if key == KEY_ENABLED:
            self._apply_enabled(self.config().enabled)
        elif key in (KEY_INTERVAL, KEY_SCHEDULE):
            logger.debug("%s changed → restarting scheduler", key)
            if self.enabled:
                self.scheduler.start()
        elif key in (KEY_SPEED, KEY_SMART_MODE):
            logger.debug("%s changed → applies to the next run", key)
        elif key == KEY_MANUAL_TRIGGER:
            if self.store.get(KEY_MANUAL_TRIGGER):
                self.store.set(KEY_MANUAL_TRIGGER, False)
                self.run_manual()
        elif key == KEY_MANUAL_CANCEL:
            if self.store.get(KEY_MANUAL_CANCEL):
                self.store.set(KEY_MANUAL_CANCEL, False)
                self.cancel(save=False)

    def _apply_enabled(self, enabled: bool) -> None:
        if not enabled:
            self.disable()
            return
        if self.enabled and self.scheduler.active:
            return
        logger.info("Enabling pixel refresh")
        self.enabled = True
        if self.session.status is SessionStatus.DISABLED:
            self.session.reset(SessionStatus.IDLE)
            self.events.on_status_change(SessionStatus.IDLE)
        self.scheduler.start()

    def _on_run_finished(self, outcome: SessionStatus) -> None:
        if outcome is SessionStatus.COMPLETED:
            self.interrupted.clear()
        self.scheduler.refresh_next_run()
        if not self.enabled and self.session.status is SessionStatus.IDLE:
            # Run finished while disabled
            self.session.reset(SessionStatus.DISABLED)
            self.events.on_status_change(SessionStatus.DISABLED)
