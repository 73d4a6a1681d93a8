"""Session state and persisted interruption state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

from oledcare.settings.refresh import KEY_INTERRUPTED, KEY_INTERRUPTED_PROGRESS
from oledcare.settings.store import SettingsStore

logger: Final = logging.getLogger(__name__)


class SessionStatus(Enum):
    """Lifecycle state of the refresh session."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"  # transient, always followed by IDLE
    INTERRUPTED = "interrupted"  # transient, always followed by IDLE
    ERROR = "error"  # transient, always followed by IDLE
    DISABLED = "disabled"


@dataclass
class RefreshSession:
    """Mutable state of the single refresh session owned by the engine.

    Created once per engine with ``status=IDLE`` and ``progress=0``; it is
    reset between runs, never replaced.
    """

    status: SessionStatus = SessionStatus.IDLE
    progress: float = 0.0
    current_phase_index: int = 0
    start_timestamp: float | None = None
    total_duration_seconds: int = 0

    @property
    def running(self) -> bool:
        return self.status is SessionStatus.RUNNING

    @property
    def time_remaining_seconds(self) -> int:
        """Estimated seconds left, clamped to [0, 3600]."""
        remaining = round(self.total_duration_seconds * (1.0 - self.progress))
        return min(3600, max(0, remaining))

    @property
    def progress_percent(self) -> int:
        return min(100, max(0, round(self.progress * 100)))

    def reset(self, status: SessionStatus = SessionStatus.IDLE) -> None:
        """Return to a clean, non-running state."""
        self.status = status
        self.progress = 0.0
        self.current_phase_index = 0
        self.start_timestamp = None
        self.total_duration_seconds = 0


@dataclass(frozen=True)
class InterruptedState:
    """Persisted marker for a run that should resume later."""

    interrupted: bool = False
    progress_percent: int = 0

    @property
    def progress(self) -> float:
        """Saved progress as a fraction in [0, 1]."""
        return self.progress_percent / 100


class InterruptedStateStore:
    """Reads and writes ``InterruptedState`` through the settings store."""

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    def load(self) -> InterruptedState:
        try:
            interrupted = bool(self._store.get(KEY_INTERRUPTED))
            percent = int(self._store.get(KEY_INTERRUPTED_PROGRESS) or 0)
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid interrupted state, ignoring: %s", exc)
            return InterruptedState()
        return InterruptedState(interrupted, min(100, max(0, percent)))

    def save(self, progress: float) -> InterruptedState:
        """Persist an interruption at ``progress`` (fraction in [0, 1])."""
        state = InterruptedState(True, min(100, max(0, round(progress * 100))))
        self._store.set(KEY_INTERRUPTED_PROGRESS, state.progress_percent)
        self._store.set(KEY_INTERRUPTED, True)
        logger.info("Saved interrupted refresh at %d%%", state.progress_percent)
        return state

    def clear(self) -> None:
        self._store.set(KEY_INTERRUPTED, False)
        self._store.set(KEY_INTERRUPTED_PROGRESS, 0)
