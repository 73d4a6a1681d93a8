"""Common utility functions and helpers for the oledcare package."""

from oledcare.utils.time import TimeUtils

__all__ = [
    "TimeUtils",
]
