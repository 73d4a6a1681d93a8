"""Weighted phase table for the refresh routine.

A refresh routine is an ordered list of phases whose weights sum to 1.0.
Phase ``i`` owns the half-open progress interval
``[boundary[i], boundary[i + 1])``; progress of 1.0 or more belongs to the
last phase.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final

# Total routine duration (seconds) per speed setting
SPEED_DURATIONS: Final[dict[int, int]] = {1: 300, 2: 180, 3: 120, 4: 60, 5: 30}
DEFAULT_DURATION_SECONDS: Final = 180

# Boundaries are rounded so decimal weights produce exact edges (0.15 + 0.10 + 0.10 == 0.35)
_BOUNDARY_PRECISION: Final = 9


class PhaseKind(Enum):
    """Visual effect used by a phase."""

    SOLID = "solid"
    SWEEP = "sweep"


class SweepDirection(Enum):
    """Direction of travel for the sweep bar."""

    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class Phase:
    """One weighted segment of the refresh routine.

    ``payload`` is an ``(r, g, b)`` tuple for solid phases and a
    ``SweepDirection`` for sweep phases.
    """

    kind: PhaseKind
    payload: tuple[int, int, int] | SweepDirection
    weight: float
    name: str = ""

    def __post_init__(self) -> None:
        if not 0.0 < self.weight <= 1.0:
            raise ValueError(f"Phase weight must be in (0, 1], got {self.weight}")
        if self.kind is PhaseKind.SWEEP and not isinstance(self.payload, SweepDirection):
            raise ValueError("Sweep phases require a SweepDirection payload")
        if self.kind is PhaseKind.SOLID and isinstance(self.payload, SweepDirection):
            raise ValueError("Solid phases require an RGB payload")

    @classmethod
    def solid(cls, name: str, color: tuple[int, int, int], weight: float) -> Phase:
        return cls(PhaseKind.SOLID, color, weight, name)

    @classmethod
    def sweep(cls, direction: SweepDirection, weight: float) -> Phase:
        return cls(PhaseKind.SWEEP, direction, weight, f"sweep-{direction.value}")

    def sweep_position(self, local_progress: float) -> float:
        """Return the bar position (0 = top, 1 = bottom) for a local progress."""
        local_progress = min(1.0, max(0.0, local_progress))
        if self.payload is SweepDirection.UP:
            return 1.0 - local_progress
        return local_progress


DEFAULT_PHASES: Final[tuple[Phase, ...]] = (
    Phase.solid("white", (255, 255, 255), 0.15),
    Phase.solid("red", (255, 0, 0), 0.10),
    Phase.solid("green", (0, 255, 0), 0.10),
    Phase.solid("blue", (0, 0, 255), 0.10),
    Phase.solid("black", (0, 0, 0), 0.15),
    Phase.sweep(SweepDirection.DOWN, 0.20),
    Phase.sweep(SweepDirection.UP, 0.20),
)


class PhaseTable:
    """Ordered phases with precomputed cumulative boundaries."""

    def __init__(self, phases: Sequence[Phase] = DEFAULT_PHASES) -> None:
        """Build the table and validate the weight sum.

        Args:
            phases: Ordered phases; weights must sum to 1.0

        Raises:
            ValueError: If the table is empty or the weights do not sum to 1.0
        """
        if not phases:
            raise ValueError("Phase table cannot be empty")

        total = math.fsum(p.weight for p in phases)
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Phase weights must sum to 1.0, got {total}")

        self._phases: tuple[Phase, ...] = tuple(phases)

        running = 0.0
        boundaries = [0.0]
        for phase in self._phases:
            running = math.fsum((running, phase.weight))
            boundaries.append(round(running, _BOUNDARY_PRECISION))
        boundaries[-1] = 1.0
        self._boundaries: tuple[float, ...] = tuple(boundaries)

    def __len__(self) -> int:
        return len(self._phases)

    def __getitem__(self, index: int) -> Phase:
        return self._phases[index]

    def __iter__(self) -> Iterator[Phase]:
        return iter(self._phases)

    @property
    def boundaries(self) -> tuple[float, ...]:
        """Cumulative boundaries, starting at 0.0 and ending at 1.0."""
        return self._boundaries

    def bounds(self, index: int) -> tuple[float, float]:
        """Return the ``(start, end)`` progress interval of a phase."""
        return self._boundaries[index], self._boundaries[index + 1]

    def phase_index_for_progress(self, progress: float) -> int:
        """Return the index of the phase that owns ``progress``.

        The first phase whose cumulative end exceeds ``progress`` wins, so a
        progress value sitting exactly on a boundary belongs to the phase
        that starts there.
        """
        for index, end in enumerate(self._boundaries[1:]):
            if progress < end:
                return index
        return len(self._phases) - 1


def duration_for_speed(speed: int) -> int:
    """Total routine duration in seconds for a speed setting.

    Unknown speeds fall back to ``DEFAULT_DURATION_SECONDS`` (180s).
    """
    return SPEED_DURATIONS.get(speed, DEFAULT_DURATION_SECONDS)
