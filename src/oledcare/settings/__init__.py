"""Refresh settings management.

This package provides:
- RefreshConfig: Validated, immutable snapshot of the refresh settings
- SettingsStore: Persisted key-value store with change notification
"""

from oledcare.settings.refresh import RefreshConfig, find_corrections
from oledcare.settings.store import (
    MemorySettingsStore,
    SettingsStore,
    YamlSettingsStore,
    load_refresh_config,
)

__all__ = [
    "MemorySettingsStore",
    "RefreshConfig",
    "SettingsStore",
    "YamlSettingsStore",
    "find_corrections",
    "load_refresh_config",
]
