"""
Injectable time source.

Services receive a ``Clock`` at construction instead of calling
``datetime.now()`` so billing periods and timeline timestamps are
reproducible in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Controlled clock for tests and replays.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._time = fixed_time or datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._time

    def set_time(self, time: datetime) -> None:
        self._time = time

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward, e.g. ``advance(hours=2)``."""
        self._time = self._time + timedelta(**delta)
        return self._time
