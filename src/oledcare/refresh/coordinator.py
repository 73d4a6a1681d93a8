"""Suspend/resume coordination for interrupted refresh runs."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final

from oledcare.refresh.session import InterruptedStateStore, RefreshSession
from oledcare.scheduling import Scheduler

logger: Final = logging.getLogger(__name__)


class SuspendResumeCoordinator:
    """Keeps refresh runs alive across sleep, disable and restarts.

    - About to sleep: save progress and stop the active run
    - Resumed (or engine start-up): restart a saved run from its progress
      and clear the saved marker

    Resuming is idempotent: once the marker is cleared a second resume
    does nothing.
    """

    def __init__(
        self,
        session: RefreshSession,
        scheduler: Scheduler,
        interrupted: InterruptedStateStore,
        is_enabled: Callable[[], bool],
        speed: Callable[[], int],
    ) -> None:
        self.session = session
        self.scheduler = scheduler
        self.interrupted = interrupted
        self.is_enabled = is_enabled
        self.speed = speed

    def on_prepare_for_sleep(self, about_to_sleep: bool) -> None:
        """Handle the system sleep signal.

        Args:
            about_to_sleep: True before suspend, False after resume
        """
        if about_to_sleep:
            logger.info("System preparing for sleep")
            if self.session.running:
                self.scheduler.cancel(save=True)
        else:
            logger.info("System resuming from sleep")
            self.resume_if_interrupted()

    def resume_if_interrupted(self) -> bool:
        """Restart a saved run, if any.

        Returns:
            True if a run was resumed
        """
        state = self.interrupted.load()
        if not state.interrupted:
            return False
        if not self.is_enabled():
            logger.debug("Interrupted refresh pending but pixel refresh is disabled")
            return False
        if self.session.running:
            logger.debug("Interrupted refresh pending but a refresh is already running")
            return False

        logger.info("Resuming interrupted refresh from %d%%", state.progress_percent)
        started = self.scheduler.sequencer.start(state.progress, self.speed())
        self.interrupted.clear()
        return started
