"""OLED pixel refresh engine.

Runs a full-screen color and sweep routine at scheduled intervals to
limit burn-in, pausing around system sleep and resuming where it left off.
"""

__version__ = "0.1.0"
