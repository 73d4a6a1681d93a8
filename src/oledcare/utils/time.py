# src/oledcare/utils/time.py
"""Time and date handling utilities."""

from __future__ import annotations

from datetime import UTC, datetime


class TimeUtils:
    """Time-related utility functions.

    Centralized utilities for working with dates and times:
    - Current time retrieval with proper timezone handling
    - ISO-8601 formatting for persisted timestamps
    - ``HH:MM`` schedule parsing
    """

    @staticmethod
    def now_localized() -> datetime:
        """Get current datetime with local timezone.

        Returns:
            Current datetime with local timezone
        """
        return datetime.now(UTC).astimezone()

    @staticmethod
    def to_iso(dt: datetime) -> str:
        """Format a datetime as an ISO-8601 string in UTC.

        Naive datetimes are assumed to be UTC.
        """
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC).isoformat(timespec="seconds")

    @staticmethod
    def parse_hhmm(value: str) -> int:
        """Convert an ``HH:MM`` string to minutes after midnight.

        Raises:
            ValueError: If the string is not a valid 24-hour time
        """
        hours_text, _, minutes_text = value.partition(":")
        hours, minutes = int(hours_text), int(minutes_text)
        if not (0 <= hours <= 23 and 0 <= minutes <= 59):
            raise ValueError(f"Invalid time of day: {value}")
        return hours * 60 + minutes

    @staticmethod
    def seconds_of_day(dt: datetime) -> float:
        """Seconds elapsed since local midnight of ``dt``."""
        return dt.hour * 3600 + dt.minute * 60 + dt.second + dt.microsecond / 1_000_000
