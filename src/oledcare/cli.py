"""OLED pixel refresh CLI application.

This module provides the command-line interface for the refresh engine:
running the daemon, requesting or cancelling a run from outside it,
inspecting persisted status, rendering an offline preview of the routine
and validating settings files.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Final

import typer

from oledcare.engine import RefreshEngine
from oledcare.refresh.events import EventHub
from oledcare.refresh.phases import duration_for_speed
from oledcare.refresh.sequencer import PhaseSequencer
from oledcare.refresh.session import RefreshSession, SessionStatus
from oledcare.render import LoggingRenderer, PreviewRenderer
from oledcare.settings.refresh import (
    KEY_ENABLED,
    KEY_INTERRUPTED,
    KEY_INTERRUPTED_PROGRESS,
    KEY_MANUAL_CANCEL,
    KEY_MANUAL_TRIGGER,
    KEY_NEXT_RUN,
    KEY_PROGRESS,
    KEY_RUNNING,
    KEY_TIME_REMAINING,
    RefreshConfig,
    find_corrections,
)
from oledcare.settings.store import YamlSettingsStore
from oledcare.settings.watch import SettingsFileWatcher
from oledcare.system import ClockJumpSleepMonitor, XorgEnvironment
from oledcare.timers import AsyncioTimerService, ManualTimerService

# ── CLI setup ────────────────────────────────────────────────────────────────
app = typer.Typer(help="OLED pixel refresh CLI", add_completion=False)
config_app = typer.Typer(help="Config helpers")
app.add_typer(config_app, name="config")

logger: Final = logging.getLogger(__name__)  # Will be "oledcare.cli"

STATUS_KEYS: Final = (
    KEY_ENABLED,
    KEY_RUNNING,
    KEY_PROGRESS,
    KEY_TIME_REMAINING,
    KEY_NEXT_RUN,
    KEY_INTERRUPTED,
    KEY_INTERRUPTED_PROGRESS,
)

# Options shared by several commands
CONFIG_OPTION = typer.Option(None, "--config", "-c", dir_okay=False, help="Settings YAML file")
DEBUG_OPTION = typer.Option(False, "--debug", help="Enable debug logging")
PREVIEW_DIR_OPTION = typer.Option(
    None, "--preview-dir", file_okay=False, help="Write overlay frames as PNGs instead of logging"
)
OUT_OPTION = typer.Option(..., "--out", "-o", file_okay=False, help="Directory for preview frames")
SPEED_OPTION = typer.Option(2, "--speed", min=1, max=5, help="Routine speed (1 slowest - 5 fastest)")
START_OPTION = typer.Option(0.0, "--start", min=0.0, max=1.0, help="Progress to start from (0-1)")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _load_store(config: Path | None) -> YamlSettingsStore:
    try:
        return YamlSettingsStore.load(config)
    except RuntimeError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def run(
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    preview_dir: Path | None = PREVIEW_DIR_OPTION,
) -> None:
    """Run the refresh engine until interrupted."""
    _configure_logging(debug)
    store = _load_store(config)
    logger.info("Using settings file %s", store.path)

    loop = asyncio.new_event_loop()
    timers = AsyncioTimerService(loop)
    renderer = PreviewRenderer(preview_dir) if preview_dir else LoggingRenderer()

    engine = RefreshEngine(
        store,
        renderer,
        timers,
        conditions=XorgEnvironment(),
        sleep_signal=ClockJumpSleepMonitor(timers, monotonic=timers.monotonic),
        clock=timers.monotonic,
    )
    watcher = SettingsFileWatcher(store, timers)
    watcher.start()

    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGTERM handler not supported on this platform")

    try:
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        watcher.stop()
        engine.close()
        loop.close()


@app.command()
def trigger(config: Path | None = CONFIG_OPTION) -> None:
    """Ask the running engine to start a refresh now."""
    store = _load_store(config)
    store.set(KEY_MANUAL_TRIGGER, True)
    typer.echo(f"Refresh requested via {store.path}")


@app.command()
def cancel(config: Path | None = CONFIG_OPTION) -> None:
    """Ask the running engine to stop the active refresh."""
    store = _load_store(config)
    store.set(KEY_MANUAL_CANCEL, True)
    typer.echo(f"Cancel requested via {store.path}")


@app.command()
def status(config: Path | None = CONFIG_OPTION) -> None:
    """Print the persisted refresh status."""
    store = _load_store(config)
    for key in STATUS_KEYS:
        value = store.get(key)
        typer.echo(f"{key}: {'-' if value in ('', None) else value}")


@app.command()
def preview(
    out: Path = OUT_OPTION,
    speed: int = SPEED_OPTION,
    start: float = START_OPTION,
    debug: bool = DEBUG_OPTION,
) -> None:
    """Render one full routine into PNG frames on a virtual clock."""
    _configure_logging(debug)

    timers = ManualTimerService()
    renderer = PreviewRenderer(out)
    outcomes: list[SessionStatus] = []
    sequencer = PhaseSequencer(
        RefreshSession(),
        renderer,
        timers,
        EventHub(),
        clock=timers.monotonic,
        on_finished=outcomes.append,
    )

    if not sequencer.start(start, speed):
        typer.secho("Failed to start preview", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    timers.run_until_idle(limit=duration_for_speed(speed) * 2)
    sequencer.close()

    if outcomes != [SessionStatus.COMPLETED]:
        typer.secho("Preview did not complete", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Wrote {len(renderer.frames_written)} frames to {out}")


# ───────────────────────── config sub-commands ───────────────────────────────
@config_app.command("validate")
def validate_config(file: Path):
    """Validate a settings file and show the corrected values."""
    try:
        data = YamlSettingsStore.read(file)
    except RuntimeError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    corrections = find_corrections(data)
    for error in corrections:
        typer.secho(f"  • {error.message}", fg=typer.colors.YELLOW)

    config = RefreshConfig.from_mapping(data)
    for name, value in config.model_dump().items():
        typer.echo(f"{name}: {list(value) if isinstance(value, tuple) else value}")

    if corrections:
        typer.echo(f"⚠️  Config valid with {len(corrections)} correction(s)")
    else:
        typer.echo("✅ Config valid")


# ───────────────────────── module entrypoint ────────────────────────────────
if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(0)
