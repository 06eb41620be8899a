"""
Time source for the execution engine.

Timestamps written by the engine always come from a Clock so tests can
freeze time with a MockClock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

BACKDATE = timedelta(minutes=1)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Return the current time in UTC."""

    @abstractmethod
    def backdate(self) -> datetime:
        """Return the current time minus one minute."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def backdate(self) -> datetime:
        return self.now() - BACKDATE


class MockClock(Clock):
    """Clock frozen at a fixed instant."""

    def __init__(self, t: datetime):
        self.t = t

    def now(self) -> datetime:
        return self.t

    def backdate(self) -> datetime:
        return self.t - BACKDATE


def new() -> Clock:
    return SystemClock()


def new_mock(t: datetime) -> Clock:
    return MockClock(t)
