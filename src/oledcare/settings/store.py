"""Key-value settings stores with change notification."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar, Final, Protocol, runtime_checkable

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from oledcare.settings.refresh import (
    CONFIG_KEYS,
    DEFAULT_INTERVAL_MINUTES,
    DEFAULT_SPEED,
    KEY_ENABLED,
    KEY_INTERRUPTED,
    KEY_INTERRUPTED_PROGRESS,
    KEY_INTERVAL,
    KEY_MANUAL_CANCEL,
    KEY_MANUAL_TRIGGER,
    KEY_NEXT_RUN,
    KEY_PROGRESS,
    KEY_RUNNING,
    KEY_SCHEDULE,
    KEY_SMART_MODE,
    KEY_SPEED,
    KEY_TIME_REMAINING,
    RefreshConfig,
)

# Load environment variables from .env file(s)
load_dotenv()

logger: Final = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]

DEFAULT_VALUES: Final[dict[str, Any]] = {
    KEY_ENABLED: False,
    KEY_INTERVAL: DEFAULT_INTERVAL_MINUTES,
    KEY_SPEED: DEFAULT_SPEED,
    KEY_SMART_MODE: False,
    KEY_SCHEDULE: [],
    KEY_RUNNING: False,
    KEY_PROGRESS: 0,
    KEY_TIME_REMAINING: 0,
    KEY_NEXT_RUN: "",
    KEY_MANUAL_TRIGGER: False,
    KEY_MANUAL_CANCEL: False,
    KEY_INTERRUPTED: False,
    KEY_INTERRUPTED_PROGRESS: 0,
}


def _interpolate_env(content: str) -> str:
    return re.sub(r"\$\{(\w+)\}", lambda m: os.getenv(m.group(1), ""), content)


@runtime_checkable
class SettingsStore(Protocol):
    """Protocol for the persisted key-value settings store."""

    def get(self, key: str) -> Any:
        """Return the stored value, or the key's default when unset."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store a value and notify listeners if it changed."""
        ...

    def connect(self, callback: ChangeCallback) -> int:
        """Register a change listener; returns an id for ``disconnect``."""
        ...

    def disconnect(self, handler_id: int) -> None:
        """Remove a change listener. Unknown ids are ignored."""
        ...


class MemorySettingsStore:
    """In-memory settings store.

    Listeners are called synchronously with the changed key after each
    write that actually changes the value.
    """

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(DEFAULT_VALUES)
        self._values.update(values or {})
        self._listeners: dict[int, ChangeCallback] = {}
        self._next_id = 1

    def get(self, key: str) -> Any:
        return self._values.get(key, DEFAULT_VALUES.get(key))

    def set(self, key: str, value: Any) -> None:
        if key in self._values and self._values[key] == value:
            return
        self._values[key] = value
        self._persist()
        self._notify(key)

    def connect(self, callback: ChangeCallback) -> int:
        handler_id = self._next_id
        self._next_id += 1
        self._listeners[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._listeners.pop(handler_id, None)

    def as_dict(self) -> dict[str, Any]:
        """Return a copy of every stored value."""
        return dict(self._values)

    def _persist(self) -> None:
        """Hook for subclasses that write values to disk."""

    def _notify(self, key: str) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback(key)
            except Exception as exc:
                logger.error("Settings listener failed for %s: %s", key, exc)


class YamlSettingsStore(MemorySettingsStore):
    """Settings store persisted to a YAML file.

    Every change is written back to the file immediately. Edits made to
    the file by other processes are picked up by ``reload``, which also
    runs before every write so they are never overwritten.
    """

    # Default search paths for configuration
    DEFAULT_CONFIG_PATHS: ClassVar[list[Path]] = [
        Path("config.yaml"),
        Path("~/.config/oledcare/config.yaml").expanduser(),
        Path("/etc/oledcare/config.yaml"),
    ]

    def __init__(self, path: Path, values: dict[str, Any] | None = None) -> None:
        self.path = path
        super().__init__(values)
        # File content as last read or written by this store
        self._synced_text: str | None = self._file_text()

    @classmethod
    def resolve_path(cls, path: Path | None = None) -> Path:
        """Pick the settings file location.

        Order: explicit path, ``OLEDCARE_CONFIG``, then the default search
        paths. When nothing exists yet the first default path is used.
        """
        if path is not None:
            return path

        env_path = os.environ.get("OLEDCARE_CONFIG")
        if env_path:
            return Path(env_path)

        for default_path in cls.DEFAULT_CONFIG_PATHS:
            if default_path.exists():
                return default_path
        return cls.DEFAULT_CONFIG_PATHS[0]

    @classmethod
    def load(cls, path: Path | None = None) -> YamlSettingsStore:
        """Load settings from a YAML file.

        A missing file starts from defaults and is created on first write.

        Args:
            path: Path to settings file (optional, searches default locations if None)

        Returns:
            Settings store bound to the resolved file

        Raises:
            RuntimeError: If the file cannot be read or is not a mapping
        """
        resolved = cls.resolve_path(path)
        if not resolved.exists():
            logger.info("No settings file at %s, starting from defaults", resolved)
            return cls(resolved)
        return cls(resolved, cls.read(resolved))

    @staticmethod
    def read(path: Path) -> dict[str, Any]:
        """Read the raw key-value mapping from a settings file.

        ${VAR} references are replaced from the environment first.

        Raises:
            RuntimeError: If the file cannot be read or is not a mapping
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(f"Unable to read settings YAML: {exc}") from exc
        return _parse(text, path)

    def set(self, key: str, value: Any) -> None:
        # External edits are merged before the write and announced after it
        changed = self._merge_file()
        super().set(key, value)
        for changed_key in changed:
            self._notify(changed_key)

    def reload(self) -> list[str]:
        """Apply edits made to the file since it was last read or written.

        Listeners are notified for every key whose value changed. An
        unreadable file is logged and skipped until its content changes.

        Returns:
            Keys whose value changed
        """
        changed = self._merge_file()
        for key in changed:
            self._notify(key)
        return changed

    def _merge_file(self) -> list[str]:
        text = self._file_text()
        if text is None or text == self._synced_text:
            return []
        self._synced_text = text

        try:
            data = _parse(text, self.path)
        except RuntimeError as exc:
            logger.warning("Ignoring settings file change: %s", exc)
            return []

        changed = [key for key, value in data.items() if self.get(key) != value]
        if not changed:
            return []

        logger.info("Settings file changed: %s", ", ".join(changed))
        for key in changed:
            self._values[key] = data[key]
        return changed

    def _file_text(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Cannot read %s: %s", self.path, exc)
            return None

    def _persist(self) -> None:
        text = yaml.safe_dump(self._values, sort_keys=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write settings to %s: %s", self.path, exc)
            return
        self._synced_text = text


def _parse(text: str, path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(_interpolate_env(text)) or {}
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Unable to read settings YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise RuntimeError(f"Invalid settings file {path}: expected a mapping")

    return {str(k): v for k, v in data.items()}


def load_refresh_config(store: SettingsStore) -> RefreshConfig:
    """Build a validated snapshot from the store.

    Never raises: a read failure is logged and defaults are returned.
    """
    try:
        return RefreshConfig.from_mapping({key: store.get(key) for key in CONFIG_KEYS})
    except ValidationError as exc:
        logger.warning("Invalid refresh settings, using defaults: %s", exc)
        return RefreshConfig()
    except Exception as exc:  # store backends may fail in arbitrary ways
        logger.warning("Unable to read refresh settings, using defaults: %s", exc)
        return RefreshConfig()
