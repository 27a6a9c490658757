"""
Clock

Flows and services receive a Clock instead of calling datetime.now()
themselves, so timestamps written into hashes and signatures are
reproducible in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Source of the current time. Always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Real wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Clock frozen at a given instant until moved explicitly.

    Used by tests.
    """

    def __init__(self, fixed_time: Optional[datetime] = None):
        self._time = fixed_time or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
        if self._time.utcoffset() is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")

    def now(self) -> datetime:
        return self._time

    def advance(self, seconds: float = 1) -> datetime:
        self._time = self._time + timedelta(seconds=seconds)
        return self._time

    def set_time(self, value: datetime) -> None:
        self._time = value
