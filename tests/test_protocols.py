"""Tests for the collaborator protocols and their test doubles."""

import pytest

from oledcare.protocols import (
    EnvironmentConditions,
    ErrorSimulatingRenderer,
    MockRenderer,
    RecordingListener,
    Renderer,
    SleepSignal,
    TimerService,
    assert_overlay_torn_down,
    create_error_simulating_renderer,
    create_mock_renderer,
)
from oledcare.refresh.events import EventHub, RefreshListener
from oledcare.refresh.phases import SweepDirection
from oledcare.refresh.session import RefreshSession, SessionStatus
from oledcare.settings.store import MemorySettingsStore
from oledcare.status import StatusProjector
from oledcare.system import StaticEnvironment
from oledcare.timers import ManualTimerService


def test_mock_renderer_conforms() -> None:
    renderer = create_mock_renderer()
    assert isinstance(renderer, Renderer)
    assert isinstance(renderer, MockRenderer)


def test_protocol_conformance_of_engine_parts() -> None:
    assert isinstance(ManualTimerService(), TimerService)
    assert isinstance(StaticEnvironment(), EnvironmentConditions)
    assert isinstance(RecordingListener(), RefreshListener)
    assert isinstance(StatusProjector(MemorySettingsStore(), RefreshSession()), RefreshListener)
    assert not isinstance(object(), SleepSignal)


def test_mock_renderer_records_calls() -> None:
    renderer = MockRenderer()
    renderer.begin_overlay()
    renderer.set_solid_color((1, 2, 3))
    renderer.position_sweep_bar(0.25, SweepDirection.UP)
    renderer.end_overlay()

    assert renderer.calls_named("set_solid_color") == [((1, 2, 3),)]
    assert renderer.calls_named("position_sweep_bar") == [(0.25, SweepDirection.UP)]
    assert assert_overlay_torn_down(renderer)

    renderer.reset_call_history()
    assert renderer.calls == []


def test_assert_overlay_torn_down_fails_when_open() -> None:
    renderer = MockRenderer()
    renderer.begin_overlay()
    with pytest.raises(AssertionError):
        assert_overlay_torn_down(renderer)


def test_error_simulating_renderer_fail_after() -> None:
    renderer = create_error_simulating_renderer(["set_solid_color"], fail_after=2)
    assert isinstance(renderer, ErrorSimulatingRenderer)
    renderer.set_solid_color((0, 0, 0))
    renderer.set_solid_color((0, 0, 0))
    with pytest.raises(RuntimeError, match="set_solid_color"):
        renderer.set_solid_color((0, 0, 0))
    assert len(renderer.calls_named("set_solid_color")) == 2


def test_event_hub_isolates_listener_failures() -> None:
    class Broken(RecordingListener):
        def on_status_change(self, status: SessionStatus) -> None:
            raise RuntimeError("broken listener")

    good = RecordingListener()
    hub = EventHub([Broken(), good])
    hub.on_status_change(SessionStatus.RUNNING)
    hub.on_progress(0.5)
    assert good.statuses == [SessionStatus.RUNNING]
    assert good.progress == [0.5]


def test_event_hub_add_remove() -> None:
    listener = RecordingListener()
    hub = EventHub()
    hub.add(listener)
    hub.add(listener)
    hub.on_progress(0.1)
    hub.remove(listener)
    hub.on_progress(0.2)
    assert listener.progress == [0.1]
