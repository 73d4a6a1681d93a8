"""Projection of engine state onto the persisted status keys."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Final

from oledcare.refresh.errors import PixelRefreshError
from oledcare.refresh.session import RefreshSession, SessionStatus
from oledcare.settings.refresh import (
    KEY_NEXT_RUN,
    KEY_PROGRESS,
    KEY_RUNNING,
    KEY_TIME_REMAINING,
)
from oledcare.settings.store import SettingsStore
from oledcare.utils.time import TimeUtils

logger: Final = logging.getLogger(__name__)


class StatusProjector:
    """Writes ``running``, ``progress``, ``time-remaining`` and ``next-run``.

    Progress is throttled to whole percentages so a run produces at most
    about a hundred progress writes however fast it ticks.
    """

    def __init__(self, store: SettingsStore, session: RefreshSession) -> None:
        self.store = store
        self.session = session
        self._last_percent: int | None = None

    def on_progress(self, progress: float) -> None:
        percent = min(100, max(0, round(progress * 100)))
        if percent == self._last_percent:
            return
        self._last_percent = percent
        self.store.set(KEY_PROGRESS, percent)
        self.store.set(KEY_TIME_REMAINING, self.session.time_remaining_seconds)

    def on_status_change(self, status: SessionStatus) -> None:
        if status is SessionStatus.RUNNING:
            self._last_percent = None
            self.store.set(KEY_RUNNING, True)
            self.on_progress(self.session.progress)
        elif status in (SessionStatus.IDLE, SessionStatus.DISABLED):
            self._last_percent = None
            self.store.set(KEY_RUNNING, False)
            self.store.set(KEY_PROGRESS, 0)
            self.store.set(KEY_TIME_REMAINING, 0)
            if status is SessionStatus.DISABLED:
                self.store.set(KEY_NEXT_RUN, "")

    def on_error(self, error: PixelRefreshError) -> None:
        logger.debug("Status projector saw %s error", error.kind.value)

    def set_next_run(self, when: datetime | None) -> None:
        self.store.set(KEY_NEXT_RUN, TimeUtils.to_iso(when) if when else "")
