"""Typed observer interface for refresh engine events."""

from __future__ import annotations

import logging
from typing import Final, Protocol, runtime_checkable

from oledcare.refresh.errors import PixelRefreshError
from oledcare.refresh.session import SessionStatus

logger: Final = logging.getLogger(__name__)


@runtime_checkable
class RefreshListener(Protocol):
    """Protocol for objects observing the refresh engine."""

    def on_progress(self, progress: float) -> None:
        """Overall routine progress changed (fraction in [0, 1])."""
        ...

    def on_status_change(self, status: SessionStatus) -> None:
        """The session moved to a new status."""
        ...

    def on_error(self, error: PixelRefreshError) -> None:
        """An engine operation failed and was contained."""
        ...


class EventHub:
    """Fans engine events out to registered listeners.

    A failing listener is logged and does not stop delivery to the others.
    """

    def __init__(self, listeners: list[RefreshListener] | None = None) -> None:
        self._listeners: list[RefreshListener] = list(listeners or [])

    def add(self, listener: RefreshListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: RefreshListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def on_progress(self, progress: float) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_progress(progress)
            except Exception as exc:
                logger.error("Listener %r failed on progress: %s", listener, exc)

    def on_status_change(self, status: SessionStatus) -> None:
        logger.debug("Session status → %s", status.value)
        for listener in list(self._listeners):
            try:
                listener.on_status_change(status)
            except Exception as exc:
                logger.error("Listener %r failed on status change: %s", listener, exc)

    def on_error(self, error: PixelRefreshError) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_error(error)
            except Exception as exc:
                logger.error("Listener %r failed on error event: %s", listener, exc)
