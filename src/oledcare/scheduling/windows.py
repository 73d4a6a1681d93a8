"""Schedule window checks.

A schedule entry ``HH:MM`` opens a window ``[HH:MM, HH:MM + interval)``
that may wrap past midnight. Window state is derived on every check and
never stored.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Final

from oledcare.utils.time import TimeUtils

SECONDS_PER_DAY: Final = 86400


def matching_window(
    moment: datetime, schedule: Sequence[str], interval_minutes: int
) -> str | None:
    """Return the first schedule entry whose window contains ``moment``."""
    now_seconds = TimeUtils.seconds_of_day(moment)
    window = interval_minutes * 60
    for entry in schedule:
        start = TimeUtils.parse_hhmm(entry) * 60
        if (now_seconds - start) % SECONDS_PER_DAY < window:
            return entry
    return None


def in_schedule_window(moment: datetime, schedule: Sequence[str], interval_minutes: int) -> bool:
    """Check whether ``moment`` falls inside any schedule window.

    An empty schedule places no restriction.

    Args:
        moment: Time to check (local time of day is used)
        schedule: Valid ``HH:MM`` entries
        interval_minutes: Window length in minutes

    Returns:
        True if a run may start at ``moment``
    """
    if not schedule:
        return True
    return matching_window(moment, schedule, interval_minutes) is not None
