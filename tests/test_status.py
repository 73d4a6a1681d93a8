"""Tests for the status projector."""

from datetime import UTC, datetime

from oledcare.refresh.errors import OperationError
from oledcare.refresh.session import RefreshSession, SessionStatus
from oledcare.settings.refresh import KEY_NEXT_RUN, KEY_PROGRESS, KEY_RUNNING, KEY_TIME_REMAINING
from oledcare.settings.store import MemorySettingsStore
from oledcare.status import StatusProjector


def _projector(total: int = 180) -> tuple[StatusProjector, MemorySettingsStore, RefreshSession]:
    store = MemorySettingsStore()
    session = RefreshSession(status=SessionStatus.RUNNING, total_duration_seconds=total)
    return StatusProjector(store, session), store, session


def test_progress_written_per_whole_percent() -> None:
    projector, store, session = _projector()
    writes: list[str] = []
    store.connect(writes.append)

    for value in (0.101, 0.102, 0.104, 0.111):
        session.progress = value
        projector.on_progress(value)

    assert store.get(KEY_PROGRESS) == 11
    assert writes.count(KEY_PROGRESS) == 2  # 10 and 11
    assert store.get(KEY_TIME_REMAINING) == 160


def test_time_remaining_clamped() -> None:
    session = RefreshSession(total_duration_seconds=10_000)
    assert session.time_remaining_seconds == 3600
    session.progress = 1.5
    assert session.time_remaining_seconds == 0


def test_running_and_idle_transitions() -> None:
    projector, store, session = _projector()
    session.progress = 0.5
    projector.on_status_change(SessionStatus.RUNNING)
    assert store.get(KEY_RUNNING) is True
    assert store.get(KEY_PROGRESS) == 50

    store.set(KEY_NEXT_RUN, "2025-01-01T13:00:00+00:00")
    projector.on_status_change(SessionStatus.IDLE)
    assert store.get(KEY_RUNNING) is False
    assert store.get(KEY_PROGRESS) == 0
    assert store.get(KEY_TIME_REMAINING) == 0
    assert store.get(KEY_NEXT_RUN) == "2025-01-01T13:00:00+00:00"

    projector.on_status_change(SessionStatus.DISABLED)
    assert store.get(KEY_NEXT_RUN) == ""


def test_transient_statuses_leave_store_alone() -> None:
    projector, store, _ = _projector()
    writes: list[str] = []
    store.connect(writes.append)
    projector.on_status_change(SessionStatus.COMPLETED)
    projector.on_status_change(SessionStatus.ERROR)
    projector.on_error(OperationError("render", "boom"))
    assert writes == []


def test_set_next_run() -> None:
    projector, store, _ = _projector()
    projector.set_next_run(datetime(2025, 6, 1, 8, 30, tzinfo=UTC))
    assert store.get(KEY_NEXT_RUN) == "2025-06-01T08:30:00+00:00"
    projector.set_next_run(None)
    assert store.get(KEY_NEXT_RUN) == ""
