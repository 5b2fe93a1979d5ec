"""Countdown timer for periodic broadcasts."""

import time
from typing import Callable


class BroadcastTimer:
    """
    Monotonic countdown that must be reset manually after it fires.

    Example:
        timer = BroadcastTimer(5.0)
        if timer.overflow():
            send_telemetry()
            timer.reset()
    """

    def __init__(self, period: float, clock: Callable[[], float] = time.monotonic):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self._period = period
        self._clock = clock
        self._start = clock()

    @property
    def period(self) -> float:
        return self._period

    def overflow(self) -> bool:
        """True once the period has elapsed since the last reset."""
        return self._clock() - self._start >= self._period

    def remaining(self) -> float:
        return max(0.0, self._period - (self._clock() - self._start))

    def reset(self) -> None:
        self._start = self._clock()
