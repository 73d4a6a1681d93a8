from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from oledcare.engine import RefreshEngine
from oledcare.protocols import MockRenderer, RecordingListener, create_mock_renderer
from oledcare.settings.refresh import KEY_ENABLED, KEY_SPEED
from oledcare.settings.store import MemorySettingsStore
from oledcare.timers import ManualTimerService

# Virtual clock zero; wall-clock time follows the manual timer service
BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def timers() -> ManualTimerService:
    return ManualTimerService()


@pytest.fixture
def now(timers: ManualTimerService) -> Callable[[], datetime]:
    return lambda: BASE_TIME + timedelta(seconds=timers.monotonic())


@pytest.fixture
def store() -> MemorySettingsStore:
    # Fastest speed keeps a full routine at 30 seconds
    return MemorySettingsStore({KEY_ENABLED: True, KEY_SPEED: 5})


@pytest.fixture
def renderer() -> MockRenderer:
    return create_mock_renderer()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def make_engine(
    store: MemorySettingsStore,
    renderer: MockRenderer,
    timers: ManualTimerService,
    now: Callable[[], datetime],
    listener: RecordingListener,
) -> Generator[Callable[..., RefreshEngine], None, None]:
    """Build engines wired to the virtual clock; all are closed afterwards."""
    engines: list[RefreshEngine] = []

    def factory(**overrides: Any) -> RefreshEngine:
        kwargs: dict[str, Any] = {
            "store": store,
            "renderer": renderer,
            "timers": timers,
            "listeners": [listener],
            "clock": timers.monotonic,
            "now": now,
        }
        kwargs.update(overrides)
        engine = RefreshEngine(**kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.close()
