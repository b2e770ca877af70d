"""
Date calculation and manipulation service.
Handles recurrence-date parsing, due time normalisation and composing
due instants in the configured local timezone.
"""
import calendar
import re
from datetime import datetime, timedelta, date, time
from typing import Optional

from chorecoins.clock import Clock, SystemClock
from chorecoins.constants import (
    DEFAULT_DUE_TIME, DUE_TIME_FORMAT, DUE_TIME_PATTERN, RECURRENCE_DATE_FORMAT
)
from chorecoins.exceptions import InvalidDateFormatException, InvalidTimeFormatException

_RECURRENCE_DATE_RE = re.compile(r"^\d{2}-\d{2}-\d{4}$")
_DUE_TIME_RE = re.compile(DUE_TIME_PATTERN)


class DateService:
    """Service for date-related operations"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    @property
    def tz(self):
        return self.clock.tz

    def now(self) -> datetime:
        """Current instant in the local timezone"""
        return self.clock.now()

    def today(self) -> date:
        """Current local calendar date"""
        return self.clock.today()

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)

    def current_time(self) -> str:
        """Current local wall-clock time as zero-padded HH:MM"""
        return self.now().strftime(DUE_TIME_FORMAT)

    @staticmethod
    def parse_recurrence_date(date_str: str) -> date:
        """
        Parse a recurrence date in strict DD-MM-YYYY form.

        Args:
            date_str: Date string like "01-03-2025"

        Returns:
            Parsed calendar date

        Raises:
            InvalidDateFormatException: If the string is not exactly
                DD-MM-YYYY or not a real calendar date
        """
        if not isinstance(date_str, str) or not _RECURRENCE_DATE_RE.match(date_str.strip()):
            raise InvalidDateFormatException(str(date_str))
        try:
            return datetime.strptime(date_str.strip(), RECURRENCE_DATE_FORMAT).date()
        except ValueError:
            raise InvalidDateFormatException(date_str)

    @staticmethod
    def format_recurrence_date(value: date) -> str:
        return value.strftime(RECURRENCE_DATE_FORMAT)

    @staticmethod
    def normalize_due_time(time_str: Optional[str]) -> str:
        """
        Validate an HH:MM (24h) time and return it zero-padded.

        "9:05" -> "09:05", None -> "00:00"

        Raises:
            InvalidTimeFormatException: If time string is invalid
        """
        if time_str is None or time_str == "":
            return DEFAULT_DUE_TIME
        if not _DUE_TIME_RE.match(time_str):
            raise InvalidTimeFormatException(time_str)
        hour, minute = DateService.parse_time(time_str)
        return f"{hour:02d}:{minute:02d}"

    @staticmethod
    def parse_time(time_str: str) -> tuple[int, int]:
        """
        Parse time string into hour and minute.

        Args:
            time_str: Time string in "HH:MM" format

        Returns:
            Tuple of (hour, minute)
        """
        parts = time_str.split(":")
        hour = int(parts[0])
        minute = int(parts[1])
        return hour, minute

    def combine_due(self, due_date: date, due_time: Optional[str]) -> datetime:
        """Compose a due date and HH:MM time into one local instant"""
        hour, minute = self.parse_time(self.normalize_due_time(due_time))
        return datetime.combine(due_date, time(hour, minute), tzinfo=self.tz)

    def is_today(self, value: date) -> bool:
        return value == self.today()

    def is_past_due(self, due_date: date, due_time: Optional[str]) -> bool:
        """
        True once the due instant lies before the current minute.

        Minute resolution, matching the HH:MM due times.
        """
        current_minute = self.now().replace(second=0, microsecond=0)
        return self.combine_due(due_date, due_time) < current_minute

    @staticmethod
    def days_in_month(value: date) -> int:
        return calendar.monthrange(value.year, value.month)[1]

    @staticmethod
    def next_day(value: date) -> date:
        return value + timedelta(days=1)
