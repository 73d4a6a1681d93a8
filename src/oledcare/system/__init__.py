"""Host system integration: environmental conditions and sleep detection."""

from oledcare.system.environment import StaticEnvironment, XorgEnvironment
from oledcare.system.sleep import ClockJumpSleepMonitor

__all__ = [
    "ClockJumpSleepMonitor",
    "StaticEnvironment",
    "XorgEnvironment",
]
