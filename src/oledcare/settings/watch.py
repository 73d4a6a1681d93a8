"""Polling watcher that feeds settings file edits into a running engine."""

from __future__ import annotations

import logging
from typing import Any, Final

from oledcare.protocols import TimerService
from oledcare.settings.store import YamlSettingsStore

logger: Final = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS: Final = 2.0


class SettingsFileWatcher:
    """Calls ``store.reload()`` every ``poll_seconds`` on the timer service.

    Other processes (the ``trigger`` and ``cancel`` commands, a text
    editor) only touch the YAML file; the reload turns their edits into
    the usual change notifications.
    """

    def __init__(
        self,
        store: YamlSettingsStore,
        timers: TimerService,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
    ) -> None:
        self.store = store
        self.timers = timers
        self.poll_seconds = poll_seconds
        self._handle: Any = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self.stop()
        self._running = True
        logger.debug("Watching %s every %.1fs", self.store.path, self.poll_seconds)
        self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self.timers.cancel(self._handle)
            self._handle = None
        self._running = False

    def _schedule(self) -> None:
        self._handle = self.timers.after(int(self.poll_seconds * 1000), self._poll)

    def _poll(self) -> None:
        self._handle = None
        if not self._running:
            return
        try:
            self.store.reload()
        except Exception as exc:
            logger.error("Settings reload failed: %s", exc)
        if self._running:
            self._schedule()
