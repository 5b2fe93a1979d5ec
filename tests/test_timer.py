"""Tests for the broadcast countdown timer."""

import pytest

from gateway.timer import BroadcastTimer


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestBroadcastTimer:

    def test_not_elapsed(self):
        clock = Clock()
        timer = BroadcastTimer(5.0, clock)
        clock.now += 4.99
        assert not timer.overflow()
        assert timer.remaining() == pytest.approx(0.01)

    def test_elapsed(self):
        clock = Clock()
        timer = BroadcastTimer(5.0, clock)
        clock.now += 5.0
        assert timer.overflow()
        assert timer.remaining() == 0.0

    def test_stays_elapsed_until_reset(self):
        clock = Clock()
        timer = BroadcastTimer(5.0, clock)
        clock.now += 12.0
        assert timer.overflow()
        assert timer.overflow()
        timer.reset()
        assert not timer.overflow()

    def test_invalid_period(self):
        with pytest.raises(ValueError):
            BroadcastTimer(0)
