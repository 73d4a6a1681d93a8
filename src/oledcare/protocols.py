# src/oledcare/protocols.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from oledcare.refresh.errors import PixelRefreshError
from oledcare.refresh.phases import SweepDirection
from oledcare.refresh.session import SessionStatus


@runtime_checkable
class Renderer(Protocol):
    """Protocol defining the interface for refresh overlay renderers.

    The engine decides what is shown and when; implementations only put
    it on screen. Any exception raised here aborts the current run.
    """

    def begin_overlay(self) -> None:
        """Create the full-screen overlay."""
        ...

    def set_solid_color(self, color: tuple[int, int, int]) -> None:
        """Fill the overlay with a solid RGB color."""
        ...

    def position_sweep_bar(self, fraction: float, direction: SweepDirection) -> None:
        """Draw the sweep bar at ``fraction`` of the screen height (0 = top)."""
        ...

    def end_overlay(self) -> None:
        """Tear the overlay down. Must be safe to call more than once."""
        ...


@runtime_checkable
class EnvironmentConditions(Protocol):
    """Protocol for environmental conditions consulted in smart mode."""

    def is_idle(self) -> bool:
        """Return True if the user has been idle long enough."""
        ...

    def has_fullscreen_critical_app(self) -> bool:
        """Return True if a fullscreen or critical application is in front."""
        ...


@runtime_checkable
class TimerService(Protocol):
    """Protocol for one-shot timers driving the engine."""

    def after(self, duration_ms: int, callback: Callable[[], None]) -> Any:
        """Call ``callback`` once after ``duration_ms``; returns a handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a pending timer. Fired or unknown handles are ignored."""
        ...


@runtime_checkable
class SleepSignal(Protocol):
    """Protocol for sources of the system ``PrepareForSleep`` signal."""

    def start(self, callback: Callable[[bool], None]) -> None:
        """Begin delivering ``callback(about_to_sleep)`` notifications."""
        ...

    def stop(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""
        ...


class MockRenderer:
    """Mock implementation of Renderer for testing."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.active = False

    def begin_overlay(self) -> None:
        self.calls.append(("begin_overlay", ()))
        self.active = True

    def set_solid_color(self, color: tuple[int, int, int]) -> None:
        self.calls.append(("set_solid_color", (color,)))

    def position_sweep_bar(self, fraction: float, direction: SweepDirection) -> None:
        self.calls.append(("position_sweep_bar", (fraction, direction)))

    def end_overlay(self) -> None:
        self.calls.append(("end_overlay", ()))
        self.active = False

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        """Return the argument tuples of every call to ``name``."""
        return [args for call, args in self.calls if call == name]

    def reset_call_history(self) -> None:
        """Reset the call history for testing."""
        self.calls = []


class ErrorSimulatingRenderer(MockRenderer):
    """Renderer mock that can simulate overlay failures."""

    def __init__(self, fail_on_methods: list[str] | None = None, fail_after: int = 0) -> None:
        """Initialize with optional methods that should fail.

        Args:
            fail_on_methods: List of method names that should raise exceptions
            fail_after: Number of successful calls allowed before failing
        """
        super().__init__()
        self.fail_on_methods = fail_on_methods or []
        self.fail_after = fail_after
        self._seen: dict[str, int] = {}

    def _maybe_fail(self, name: str) -> None:
        if name not in self.fail_on_methods:
            return
        self._seen[name] = self._seen.get(name, 0) + 1
        if self._seen[name] > self.fail_after:
            raise RuntimeError(f"Simulated renderer failure in {name}")

    def begin_overlay(self) -> None:
        self._maybe_fail("begin_overlay")
        super().begin_overlay()

    def set_solid_color(self, color: tuple[int, int, int]) -> None:
        self._maybe_fail("set_solid_color")
        super().set_solid_color(color)

    def position_sweep_bar(self, fraction: float, direction: SweepDirection) -> None:
        self._maybe_fail("position_sweep_bar")
        super().position_sweep_bar(fraction, direction)

    def end_overlay(self) -> None:
        super().end_overlay()
        self._maybe_fail("end_overlay")


class RecordingListener:
    """RefreshListener that records every event for assertions."""

    def __init__(self) -> None:
        self.progress: list[float] = []
        self.statuses: list[SessionStatus] = []
        self.errors: list[PixelRefreshError] = []

    def on_progress(self, progress: float) -> None:
        self.progress.append(progress)

    def on_status_change(self, status: SessionStatus) -> None:
        self.statuses.append(status)

    def on_error(self, error: PixelRefreshError) -> None:
        self.errors.append(error)


def create_mock_renderer() -> MockRenderer:
    """Create and return a mock renderer for testing."""
    return MockRenderer()


def create_error_simulating_renderer(
    fail_on_methods: list[str] | None = None, fail_after: int = 0
) -> ErrorSimulatingRenderer:
    """Create a renderer that will fail on specified methods."""
    return ErrorSimulatingRenderer(fail_on_methods, fail_after)


def assert_overlay_torn_down(renderer: MockRenderer) -> bool:
    """Assert that the overlay was opened and then closed.

    Args:
        renderer: The mock renderer instance

    Returns:
        True if the assertion passes, raises AssertionError otherwise
    """
    assert renderer.calls_named("begin_overlay"), "Overlay was never opened"
    assert renderer.calls and renderer.calls[-1][0] == "end_overlay", (
        f"Expected end_overlay last, got {renderer.calls[-1] if renderer.calls else None}"
    )
    assert renderer.active is False
    return True
