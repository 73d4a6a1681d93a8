"""Renderers that put the refresh overlay somewhere.

``LoggingRenderer`` only logs what would be drawn. ``PreviewRenderer``
draws each distinct frame into a PNG so a routine can be inspected
without a compositor.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from PIL import Image, ImageDraw

from oledcare.refresh.phases import SweepDirection

logger: Final = logging.getLogger(__name__)

DEFAULT_PREVIEW_SIZE: Final = (320, 180)
SWEEP_BAR_HEIGHT: Final = 8
SWEEP_BAR_COLOR: Final = (255, 255, 255)
SWEEP_BACKGROUND: Final = (0, 0, 0)


class LoggingRenderer:
    """Renderer for headless hosts; logs overlay changes at debug level."""

    def __init__(self) -> None:
        self.active = False
        self._last_color: tuple[int, int, int] | None = None
        self._last_direction: SweepDirection | None = None

    def begin_overlay(self) -> None:
        self.active = True
        logger.info("Refresh overlay shown")

    def set_solid_color(self, color: tuple[int, int, int]) -> None:
        if color != self._last_color:
            logger.debug("Overlay color → #%02x%02x%02x", *color)
            self._last_color = color
            self._last_direction = None

    def position_sweep_bar(self, fraction: float, direction: SweepDirection) -> None:
        if direction is not self._last_direction:
            logger.debug("Sweep bar moving %s", direction.value)
            self._last_direction = direction
            self._last_color = None

    def end_overlay(self) -> None:
        if not self.active:
            return
        self.active = False
        self._last_color = None
        self._last_direction = None
        logger.info("Refresh overlay hidden")


class PreviewRenderer:
    """Writes a PNG for every color change and every sweep pass.

    Attributes:
        out_dir: Directory receiving the frames
        size: Frame size in pixels (width, height)
        frames_written: Paths of the frames written so far, in order
    """

    def __init__(self, out_dir: Path, size: tuple[int, int] = DEFAULT_PREVIEW_SIZE) -> None:
        self.out_dir = out_dir
        self.size = size
        self.frames_written: list[Path] = []
        self.active = False
        self._last_color: tuple[int, int, int] | None = None
        self._last_direction: SweepDirection | None = None
        self._last_fraction = 0.0

    def begin_overlay(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self.active = True

    def set_solid_color(self, color: tuple[int, int, int]) -> None:
        if color == self._last_color:
            return
        self._last_color = color
        self._last_direction = None
        image = Image.new("RGB", self.size, color)
        self._save(image, "solid-{:02x}{:02x}{:02x}".format(*color))

    def position_sweep_bar(self, fraction: float, direction: SweepDirection) -> None:
        self._last_fraction = fraction
        if direction is self._last_direction:
            return
        self._last_direction = direction
        self._last_color = None
        self._save(self._sweep_frame(fraction), f"sweep-{direction.value}")

    def end_overlay(self) -> None:
        if not self.active:
            return
        self.active = False
        self._last_color = None
        self._last_direction = None

    def _sweep_frame(self, fraction: float) -> Image.Image:
        width, height = self.size
        image = Image.new("RGB", self.size, SWEEP_BACKGROUND)
        draw = ImageDraw.Draw(image)
        top = round(min(1.0, max(0.0, fraction)) * (height - SWEEP_BAR_HEIGHT))
        draw.rectangle([0, top, width - 1, top + SWEEP_BAR_HEIGHT - 1], fill=SWEEP_BAR_COLOR)
        return image

    def _save(self, image: Image.Image, label: str) -> None:
        path = self.out_dir / f"frame-{len(self.frames_written):03d}-{label}.png"
        image.save(path)
        self.frames_written.append(path)
        logger.debug("Preview frame written to %s", path)
