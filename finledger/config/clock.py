"""
Clock abstraction.

Everything that depends on "today" receives a Clock. Production code uses
SystemClock; tests pin the date with FixedClock.
"""

from abc import ABC, abstractmethod
from datetime import date


class Clock(ABC):
    """Source of the current calendar date."""

    @abstractmethod
    def today(self) -> date:
        pass


class SystemClock(Clock):
    """Local calendar date of the running machine."""

    def today(self) -> date:
        return date.today()


class FixedClock(Clock):
    """A clock frozen on one date. Call advance_to() to move it."""

    def __init__(self, current: date):
        self._current = current

    def today(self) -> date:
        return self._current

    def advance_to(self, current: date) -> None:
        self._current = current
