"""Tests for oledcare.system.environment helpers."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from oledcare.engine import RefreshEngine
from oledcare.protocols import EnvironmentConditions
from oledcare.settings.refresh import KEY_SMART_MODE
from oledcare.settings.store import MemorySettingsStore
from oledcare.system import environment
from oledcare.system.environment import StaticEnvironment, XorgEnvironment

ROOT_WINDOW = "_NET_ACTIVE_WINDOW(WINDOW): window id # 0x3a00007\n"


class _FakeSubprocess:
    """Answer subprocess.run calls from a table keyed by the command name and first arg."""

    def __init__(self, outputs: dict[tuple[str, str], str | Exception]) -> None:
        self.outputs = outputs
        self.calls: list[list[str]] = []

    def run(self, cmd: list[str], **kwargs: Any) -> SimpleNamespace:
        self.calls.append(cmd)
        key = (cmd[0], cmd[1] if len(cmd) > 1 else "")
        result = self.outputs.get(key, FileNotFoundError(cmd[0]))
        if isinstance(result, Exception):
            raise result
        assert kwargs["check"] is True
        return SimpleNamespace(stdout=result)


def _patch(monkeypatch: pytest.MonkeyPatch, outputs: dict[tuple[str, str], str | Exception]) -> _FakeSubprocess:
    fake = _FakeSubprocess(outputs)
    monkeypatch.setattr(environment.subprocess, "run", fake.run)
    return fake


def test_protocol_conformance() -> None:
    assert isinstance(XorgEnvironment(), EnvironmentConditions)
    assert isinstance(StaticEnvironment(), EnvironmentConditions)


@pytest.mark.parametrize(("output", "idle"), [("400000\n", True), ("1200\n", False)])
def test_is_idle(monkeypatch: pytest.MonkeyPatch, output: str, idle: bool) -> None:
    _patch(monkeypatch, {("xprintidle", ""): output})
    assert XorgEnvironment().is_idle() is idle


def test_idle_unknown_when_tool_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch(monkeypatch, {})
    env = XorgEnvironment()
    assert env.idle_time_ms() is None
    # No idle monitor (Wayland, minimal hosts) does not hold runs back
    assert env.is_idle() is True


def test_idle_garbage_output(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch(monkeypatch, {("xprintidle", ""): "couldn't open display\n"})
    env = XorgEnvironment()
    assert env.idle_time_ms() is None
    assert env.is_idle() is True


def test_smart_mode_runs_without_x11_tools(
    monkeypatch: pytest.MonkeyPatch,
    make_engine: Callable[..., RefreshEngine],
    store: MemorySettingsStore,
) -> None:
    _patch(monkeypatch, {})
    store.set(KEY_SMART_MODE, True)
    engine = make_engine(conditions=XorgEnvironment())
    assert engine.scheduler.should_run() is True


def test_fullscreen_window_detected(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _patch(
        monkeypatch,
        {
            ("xprop", "-root"): ROOT_WINDOW,
            ("xprop", "-id"): (
                "_NET_WM_STATE(ATOM) = _NET_WM_STATE_FULLSCREEN\n"
                'WM_CLASS(STRING) = "gedit", "Gedit"\n'
            ),
        },
    )
    assert XorgEnvironment().has_fullscreen_critical_app() is True
    assert fake.calls[1][:3] == ["xprop", "-id", "0x3a00007"]


@pytest.mark.parametrize(
    ("wm_class", "critical"),
    [
        ('"vlc", "Vlc"', True),
        ('"Navigator", "firefox"', True),
        ('"zoom", "zoom"', True),
        ('"gnome-terminal-server", "Gnome-terminal"', False),
    ],
)
def test_critical_app_detected(monkeypatch: pytest.MonkeyPatch, wm_class: str, critical: bool) -> None:
    _patch(
        monkeypatch,
        {
            ("xprop", "-root"): ROOT_WINDOW,
            ("xprop", "-id"): f"_NET_WM_STATE(ATOM) = \nWM_CLASS(STRING) = {wm_class}\n",
        },
    )
    assert XorgEnvironment().has_fullscreen_critical_app() is critical


def test_no_active_window(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _patch(
        monkeypatch,
        {("xprop", "-root"): "_NET_ACTIVE_WINDOW(WINDOW): window id # 0x0\n"},
    )
    assert XorgEnvironment().has_fullscreen_critical_app() is False
    assert len(fake.calls) == 1


def test_xprop_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch(
        monkeypatch,
        {("xprop", "-root"): subprocess.CalledProcessError(1, ["xprop"])},
    )
    assert XorgEnvironment().has_fullscreen_critical_app() is False
