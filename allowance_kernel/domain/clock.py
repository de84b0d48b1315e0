"""
Injectable time source.

Responsibility:
    Every timestamp the kernel writes (``submitted_at``, ``signed_at``,
    ``occurred_at`` on events, grants and custody movements) comes from a
    ``Clock`` handed to the service that writes it.  Nothing in the kernel
    calls ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads the
    wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware ``datetime`` values."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock for tests and replays.

    Starts at ``start`` (default ``EPOCH``).  With the default ``step`` of
    zero, ``now()`` is frozen until moved explicitly; with a positive
    ``step`` each reading returns the current value and then moves forward,
    so successive writes get strictly increasing timestamps.
    """

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(0)):
        if step < timedelta(0):
            raise ValueError("step must not be negative")
        self._current = start or EPOCH
        self._step = step

    def now(self) -> datetime:
        value = self._current
        self._current += self._step
        return value

    def set_time(self, when: datetime) -> None:
        self._current = when

    def advance(self, seconds: float = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current

    def tick(self) -> datetime:
        """Move forward one second and return the new time."""
        return self.advance(1)
