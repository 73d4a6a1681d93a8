"""Tests for the refresh settings snapshot."""

from typing import Any

import pytest

from oledcare.refresh.errors import ConfigValidationError, ErrorKind
from oledcare.settings import RefreshConfig, find_corrections
from oledcare.settings.refresh import (
    KEY_ENABLED,
    KEY_INTERVAL,
    KEY_SCHEDULE,
    KEY_SPEED,
)


def test_defaults() -> None:
    config = RefreshConfig()
    assert config.enabled is False
    assert config.interval_minutes == 240
    assert config.speed == 2
    assert config.smart_mode is False
    assert config.schedule == ()
    assert config.interval_seconds == 14400


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (30, 60),
        (60, 60),
        (90, 90),
        (1440, 1440),
        (5000, 1440),
        ("120", 120),
        ("abc", 240),
        (None, 240),
        (True, 240),
    ],
)
def test_interval_clamped(raw: Any, expected: int) -> None:
    assert RefreshConfig(interval_minutes=raw).interval_minutes == expected


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (1, 1), (3, 3), (9, 5), ("x", 2)])
def test_speed_clamped(raw: Any, expected: int) -> None:
    assert RefreshConfig(speed=raw).speed == expected


def test_schedule_filters_invalid_and_duplicates() -> None:
    config = RefreshConfig(schedule=["08:00", "25:00", "7:30", "08:00", "noon", "23:59"])
    assert config.schedule == ("08:00", "7:30", "23:59")


def test_schedule_accepts_single_string() -> None:
    assert RefreshConfig(schedule="22:15").schedule == ("22:15",)


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ("off", False), (1, True), (0, False)])
def test_flags_coerced(raw: Any, expected: bool) -> None:
    assert RefreshConfig(enabled=raw).enabled is expected


def test_snapshot_is_immutable() -> None:
    config = RefreshConfig()
    with pytest.raises(Exception):
        config.speed = 4  # type: ignore[misc]


def test_from_mapping_uses_persisted_keys() -> None:
    config = RefreshConfig.from_mapping(
        {KEY_ENABLED: True, KEY_INTERVAL: 60, KEY_SPEED: 4, KEY_SCHEDULE: ["06:00"]}
    )
    assert config.enabled is True
    assert config.interval_minutes == 60
    assert config.speed == 4
    assert config.schedule == ("06:00",)


def test_find_corrections() -> None:
    corrections = find_corrections(
        {KEY_INTERVAL: 10, KEY_SPEED: 3, KEY_SCHEDULE: ["08:00", "99:99"]}
    )
    assert [error.key for error in corrections] == [KEY_INTERVAL, KEY_SCHEDULE]
    assert all(isinstance(error, ConfigValidationError) for error in corrections)
    assert corrections[0].kind is ErrorKind.VALIDATION
    assert corrections[0].value == 10
    assert "corrected to 60" in corrections[0].message


def test_find_corrections_clean_file() -> None:
    assert find_corrections({KEY_ENABLED: True, KEY_INTERVAL: 120}) == []
