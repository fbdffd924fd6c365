"""
Clock sources used to measure increment durations.

All times are expressed in milliseconds as floats. Only differences between
readings are meaningful; the values need not correspond to wall-clock time.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic millisecond time source."""

    def now(self) -> float:
        ...


class MonotonicClock:
    """Clock backed by ``time.monotonic()``."""

    def now(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to.

    Example:
        clock = ManualClock()
        duration = Duration(clock)
        clock.advance(25)
        assert duration.elapsed_millis() == 25
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, millis: float) -> float:
        """Move the clock forward and return the new reading."""
        if millis < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += millis
        return self._now

    def set(self, millis: float) -> None:
        if millis < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = float(millis)


class Duration:
    """Elapsed-time measurement started at construction."""

    def __init__(self, clock: Clock):
        self._clock = clock
        self.start_millis = clock.now()

    def elapsed_millis(self) -> float:
        return self._clock.now() - self.start_millis

    def __repr__(self) -> str:
        return f"Duration(elapsed_millis={self.elapsed_millis():.3f})"


DEFAULT_CLOCK = MonotonicClock()
