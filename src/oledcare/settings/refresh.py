"""Typed, validated snapshot of the pixel refresh settings."""

from __future__ import annotations

import logging
import re
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oledcare.refresh.errors import ConfigValidationError

logger: Final = logging.getLogger(__name__)

# Persisted keys consumed and produced by the engine
KEY_ENABLED: Final = "enabled"
KEY_INTERVAL: Final = "interval-minutes"
KEY_SPEED: Final = "speed"
KEY_SMART_MODE: Final = "smart-mode"
KEY_SCHEDULE: Final = "schedule"
KEY_RUNNING: Final = "running"
KEY_PROGRESS: Final = "progress"
KEY_TIME_REMAINING: Final = "time-remaining"
KEY_NEXT_RUN: Final = "next-run"
KEY_MANUAL_TRIGGER: Final = "manual-trigger"
KEY_MANUAL_CANCEL: Final = "manual-cancel"
KEY_INTERRUPTED: Final = "interrupted"
KEY_INTERRUPTED_PROGRESS: Final = "interrupted-progress"

CONFIG_KEYS: Final = (KEY_ENABLED, KEY_INTERVAL, KEY_SPEED, KEY_SMART_MODE, KEY_SCHEDULE)

DEFAULT_INTERVAL_MINUTES: Final = 240
DEFAULT_SPEED: Final = 2
MIN_INTERVAL_MINUTES: Final = 60
MAX_INTERVAL_MINUTES: Final = 1440
MIN_SPEED: Final = 1
MAX_SPEED: Final = 5

SCHEDULE_PATTERN: Final = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def _clamp_int(value: Any, lo: int, hi: int, default: int, name: str) -> int:
    if isinstance(value, bool):
        logger.warning("Invalid %s %r, using default %d", name, value, default)
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using default %d", name, value, default)
        return default
    if number < lo or number > hi:
        clamped = min(hi, max(lo, number))
        logger.warning("%s %d out of range [%d, %d], clamped to %d", name, number, lo, hi, clamped)
        return clamped
    return number


class RefreshConfig(BaseModel):
    """Immutable view over the persisted refresh settings.

    Out-of-range values are corrected when the snapshot is built, never
    at the point of use:
    - ``interval_minutes`` is clamped to [60, 1440]
    - ``speed`` is clamped to [1, 5]
    - ``schedule`` keeps only valid ``HH:MM`` entries, first occurrence wins
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(False, description="Master on/off switch")
    interval_minutes: int = Field(
        DEFAULT_INTERVAL_MINUTES, description="Scheduler period in minutes (60-1440)"
    )
    speed: int = Field(DEFAULT_SPEED, description="Routine speed (1 slowest - 5 fastest)")
    smart_mode: bool = Field(False, description="Gate runs on idle/fullscreen conditions")
    schedule: tuple[str, ...] = Field((), description="Fixed HH:MM window starts")

    # ---- validators ----
    @field_validator("enabled", "smart_mode", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def clamp_interval(cls, v: Any) -> int:
        return _clamp_int(
            v, MIN_INTERVAL_MINUTES, MAX_INTERVAL_MINUTES, DEFAULT_INTERVAL_MINUTES, "interval"
        )

    @field_validator("speed", mode="before")
    @classmethod
    def clamp_speed(cls, v: Any) -> int:
        return _clamp_int(v, MIN_SPEED, MAX_SPEED, DEFAULT_SPEED, "speed")

    @field_validator("schedule", mode="before")
    @classmethod
    def filter_schedule(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        valid: list[str] = []
        for entry in v:
            text = str(entry).strip()
            if not SCHEDULE_PATTERN.match(text):
                logger.warning("Invalid schedule time %r, ignoring", entry)
                continue
            if text not in valid:
                valid.append(text)
        return tuple(valid)

    # ---- convenience methods ----
    @property
    def interval_seconds(self) -> int:
        """Scheduler period in seconds."""
        return self.interval_minutes * 60

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> RefreshConfig:
        """Build a snapshot from persisted (dash-separated) keys.

        Missing keys keep their defaults.
        """
        fields = {
            "enabled": KEY_ENABLED,
            "interval_minutes": KEY_INTERVAL,
            "speed": KEY_SPEED,
            "smart_mode": KEY_SMART_MODE,
            "schedule": KEY_SCHEDULE,
        }
        values = {name: data[key] for name, key in fields.items() if key in data}
        return cls.model_validate(values)


def find_corrections(data: dict[str, Any]) -> list[ConfigValidationError]:
    """Report every persisted value that the snapshot had to correct.

    Args:
        data: Raw settings keyed by persisted (dash-separated) names

    Returns:
        One ``ConfigValidationError`` per corrected key, in key order
    """
    config = RefreshConfig.from_mapping(data)
    corrected = {
        KEY_ENABLED: config.enabled,
        KEY_INTERVAL: config.interval_minutes,
        KEY_SPEED: config.speed,
        KEY_SMART_MODE: config.smart_mode,
        KEY_SCHEDULE: list(config.schedule),
    }
    errors: list[ConfigValidationError] = []
    for key in CONFIG_KEYS:
        if key not in data:
            continue
        raw = data[key]
        if key == KEY_SCHEDULE:
            raw = [raw] if isinstance(raw, str) else list(raw or [])
        if raw != corrected[key]:
            errors.append(
                ConfigValidationError(
                    key, data[key], f"{key}: {data[key]!r} corrected to {corrected[key]!r}"
                )
            )
    return errors
