"""Environmental conditions consulted by smart mode."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Final

logger: Final = logging.getLogger(__name__)

# Five minutes without input counts as idle
IDLE_THRESHOLD_MS: Final = 5 * 60 * 1000

# Window classes that should never be interrupted by a refresh
CRITICAL_APP_CLASSES: Final = (
    "totem",  # Video player
    "vlc",
    "mpv",
    "obs",  # OBS Studio
    "zoom",
    "skype",
    "teams",
    "meet",
    "firefox",  # Browsers might be playing video
    "chromium",
    "chrome",
)

_WINDOW_ID = re.compile(r"0x[0-9a-fA-F]+")
_WM_CLASS = re.compile(r'^WM_CLASS\([^)]*\)\s*=\s*(.+)$', re.MULTILINE)


@dataclass
class StaticEnvironment:
    """Fixed conditions, for headless hosts and tests."""

    idle: bool = True
    fullscreen: bool = False

    def is_idle(self) -> bool:
        return self.idle

    def has_fullscreen_critical_app(self) -> bool:
        return self.fullscreen


class XorgEnvironment:
    """Reads idle time and the active window through X11 command-line tools.

    Uses ``xprintidle`` for input idle time and ``xprop`` for the active
    window's state and class. Missing tools are treated as "not idle" and
    "no fullscreen application" so smart mode errs on the side of waiting.
    """

    def __init__(
        self,
        idle_threshold_ms: int = IDLE_THRESHOLD_MS,
        critical_apps: tuple[str, ...] = CRITICAL_APP_CLASSES,
        timeout: float = 2.0,
    ) -> None:
        self.idle_threshold_ms = idle_threshold_ms
        self.critical_apps = tuple(app.lower() for app in critical_apps)
        self.timeout = timeout

    def _run(self, cmd: list[str]) -> str | None:
        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            logger.debug("%s not found", cmd[0])
            return None
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            logger.debug("%s failed: %s", cmd[0], exc)
            return None
        return result.stdout

    def idle_time_ms(self) -> int | None:
        """Milliseconds since the last user input, or None if unknown."""
        output = self._run(["xprintidle"])
        if output is None:
            return None
        try:
            return int(output.strip())
        except ValueError:
            logger.debug("Unexpected xprintidle output: %r", output)
            return None

    def is_idle(self) -> bool:
        """Whether input has been idle past the threshold.

        Unknown idle time (no xprintidle, Wayland) counts as idle so smart
        mode does not block every run.
        """
        idle_ms = self.idle_time_ms()
        if idle_ms is None:
            logger.debug("Idle time unknown, treating system as idle")
            return True
        return idle_ms >= self.idle_threshold_ms

    def _active_window(self) -> str | None:
        output = self._run(["xprop", "-root", "_NET_ACTIVE_WINDOW"])
        if not output:
            return None
        match = _WINDOW_ID.search(output)
        if match is None or int(match.group(0), 16) == 0:
            return None
        return match.group(0)

    def has_fullscreen_critical_app(self) -> bool:
        window = self._active_window()
        if window is None:
            return False

        output = self._run(["xprop", "-id", window, "_NET_WM_STATE", "WM_CLASS"])
        if not output:
            return False

        if "_NET_WM_STATE_FULLSCREEN" in output:
            logger.debug("Fullscreen window %s in front", window)
            return True

        match = _WM_CLASS.search(output)
        if match is None:
            return False
        wm_class = match.group(1).lower()
        for app in self.critical_apps:
            if app in wm_class:
                logger.debug("Critical application in front: %s", match.group(1))
                return True
        return False
