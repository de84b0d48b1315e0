"""Deterministic and system clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from allowance_kernel.domain.clock import EPOCH, DeterministicClock, SystemClock


def test_system_clock_is_timezone_aware():
    assert SystemClock().now().tzinfo is not None


def test_frozen_by_default():
    clock = DeterministicClock()

    assert clock.now() == EPOCH
    assert clock.now() == EPOCH


def test_advance_and_tick():
    clock = DeterministicClock()

    assert clock.advance(30) == EPOCH + timedelta(seconds=30)
    assert clock.tick() == EPOCH + timedelta(seconds=31)
    assert clock.now() == EPOCH + timedelta(seconds=31)


def test_set_time():
    clock = DeterministicClock()
    when = datetime(2025, 6, 1, tzinfo=timezone.utc)

    clock.set_time(when)

    assert clock.now() == when


def test_step_gives_strictly_increasing_readings():
    clock = DeterministicClock(step=timedelta(milliseconds=1))

    readings = [clock.now() for _ in range(5)]

    assert readings[0] == EPOCH
    assert all(a < b for a, b in zip(readings, readings[1:]))


def test_negative_step_is_rejected():
    with pytest.raises(ValueError):
        DeterministicClock(step=timedelta(seconds=-1))
