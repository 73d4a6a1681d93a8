"""Tests for saving and resuming interrupted refresh runs."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from oledcare.engine import RefreshEngine
from oledcare.protocols import MockRenderer, RecordingListener
from oledcare.refresh.session import InterruptedState, InterruptedStateStore, SessionStatus
from oledcare.settings.refresh import (
    KEY_ENABLED,
    KEY_INTERRUPTED,
    KEY_INTERRUPTED_PROGRESS,
)
from oledcare.settings.store import MemorySettingsStore
from oledcare.timers import ManualTimerService


def test_interrupted_state_store_round_trip() -> None:
    store = MemorySettingsStore()
    states = InterruptedStateStore(store)
    assert states.load() == InterruptedState()

    saved = states.save(0.4166)
    assert saved == InterruptedState(True, 42)
    assert store.get(KEY_INTERRUPTED) is True
    assert store.get(KEY_INTERRUPTED_PROGRESS) == 42
    assert states.load().progress == pytest.approx(0.42)

    states.clear()
    assert states.load() == InterruptedState(False, 0)


def test_interrupted_state_ignores_garbage() -> None:
    store = MemorySettingsStore({KEY_INTERRUPTED: True, KEY_INTERRUPTED_PROGRESS: "lots"})
    assert InterruptedStateStore(store).load() == InterruptedState()


def test_cancel_and_resume_round_trip(
    make_engine: Callable[..., RefreshEngine],
    store: MemorySettingsStore,
    timers: ManualTimerService,
) -> None:
    engine = make_engine()
    engine.run_manual()

    # Blue starts at 10.5 s; two thirds through it at 12.5 s
    timers.advance(12.6)
    assert engine.session.progress == pytest.approx(0.4167, abs=1e-3)

    assert engine.cancel(save=True) is True
    assert store.get(KEY_INTERRUPTED) is True
    assert store.get(KEY_INTERRUPTED_PROGRESS) == 42
    engine.close()

    restarted = make_engine()
    assert restarted.session.running
    assert restarted.session.progress == pytest.approx(0.42)
    assert restarted.session.current_phase_index == 3
    assert store.get(KEY_INTERRUPTED) is False
    assert store.get(KEY_INTERRUPTED_PROGRESS) == 0


def test_cancel_without_save_leaves_nothing_to_resume(
    make_engine: Callable[..., RefreshEngine],
    store: MemorySettingsStore,
    timers: ManualTimerService,
) -> None:
    engine = make_engine()
    engine.run_manual()
    timers.advance(5)
    engine.cancel(save=False)
    assert store.get(KEY_INTERRUPTED) is False
    assert engine.coordinator.resume_if_interrupted() is False


def test_sleep_saves_and_resume_restarts(
    make_engine: Callable[..., RefreshEngine],
    store: MemorySettingsStore,
    timers: ManualTimerService,
    renderer: MockRenderer,
    listener: RecordingListener,
) -> None:
    engine = make_engine()
    engine.run_manual()
    timers.advance(6)

    engine.on_prepare_for_sleep(True)
    assert not engine.session.running
    assert store.get(KEY_INTERRUPTED) is True
    assert store.get(KEY_INTERRUPTED_PROGRESS) == 20
    assert SessionStatus.INTERRUPTED in listener.statuses
    assert not renderer.active

    engine.on_prepare_for_sleep(False)
    assert engine.session.running
    assert engine.session.progress == pytest.approx(0.20)
    assert store.get(KEY_INTERRUPTED) is False

    # Second resume is a no-op
    engine.on_prepare_for_sleep(False)
    assert len(renderer.calls_named("begin_overlay")) == 2


def test_sleep_while_idle_saves_nothing(
    make_engine: Callable[..., RefreshEngine], store: MemorySettingsStore
) -> None:
    engine = make_engine()
    engine.on_prepare_for_sleep(True)
    assert store.get(KEY_INTERRUPTED) is False
    engine.on_prepare_for_sleep(False)
    assert not engine.session.running


def test_no_resume_while_disabled(
    make_engine: Callable[..., RefreshEngine], store: MemorySettingsStore
) -> None:
    store.set(KEY_ENABLED, False)
    store.set(KEY_INTERRUPTED_PROGRESS, 50)
    store.set(KEY_INTERRUPTED, True)

    engine = make_engine()
    assert not engine.session.running
    assert store.get(KEY_INTERRUPTED) is True


def test_resumed_run_completes_and_clears_state(
    make_engine: Callable[..., RefreshEngine],
    store: MemorySettingsStore,
    timers: ManualTimerService,
    listener: RecordingListener,
) -> None:
    store.set(KEY_INTERRUPTED_PROGRESS, 90)
    store.set(KEY_INTERRUPTED, True)

    engine = make_engine()
    assert engine.session.current_phase_index == 6
    timers.advance(5)

    assert SessionStatus.COMPLETED in listener.statuses
    assert engine.status is SessionStatus.IDLE
    assert store.get(KEY_INTERRUPTED) is False
