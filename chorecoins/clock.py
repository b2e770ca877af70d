"""
Clock abstraction.

Every "today" / "overdue" decision goes through a Clock so the engine
never reads the ambient system time directly and tests can pin time.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from chorecoins.constants import TIMEZONE


class Clock(ABC):
    """Current instant in one fixed local timezone"""

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz or ZoneInfo(TIMEZONE)

    @abstractmethod
    def now(self) -> datetime:
        """Current instant in self.tz"""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in the configured timezone"""

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock(Clock):
    """
    Clock pinned to a given instant.

    Naive datetimes are interpreted in the clock's timezone.
    """

    def __init__(self, current: datetime, tz: tzinfo | None = None):
        super().__init__(tz)
        self.set(current)

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        self._current = current.astimezone(self.tz)

    def advance(self, **kwargs) -> None:
        self._current = self._current + timedelta(**kwargs)

    def now(self) -> datetime:
        return self._current
