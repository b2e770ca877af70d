"""
Tests for recurrence expansion.

Tests cover:
1. Cardinality per recurrence kind
2. Date format validation
3. Deduplication and ordering
4. Past date policy
"""
import pytest
from datetime import date

from chorecoins.constants import Recurrence
from chorecoins.exceptions import InvalidDateFormatException, ValidationException
from chorecoins.services.recurrence_service import expand_recurrence


class TestCardinality:
    """Tests for how many dates each recurrence accepts"""

    def test_daily_single_date(self):
        """DAILY with one date should succeed"""
        assert expand_recurrence("DAILY", ["01-03-2025"]) == [date(2025, 3, 1)]

    def test_daily_rejects_two_dates(self):
        """DAILY should require exactly one date"""
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.DAILY, ["01-03-2025", "02-03-2025"])

    def test_once_rejects_two_dates(self):
        """ONCE should require exactly one date"""
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.ONCE, ["01-03-2025", "05-03-2025"])

    def test_empty_list_rejected(self):
        """An empty date list should fail"""
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.ONCE, [])

    def test_weekly_accepts_seven_dates(self):
        """WEEKLY should accept up to 7 dates"""
        dates = [f"{day:02d}-03-2025" for day in range(1, 8)]
        assert len(expand_recurrence(Recurrence.WEEKLY, dates)) == 7

    def test_weekly_rejects_eight_dates(self):
        """WEEKLY with 8 dates should fail"""
        dates = [f"{day:02d}-03-2025" for day in range(1, 9)]
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.WEEKLY, dates)

    def test_monthly_accepts_whole_month(self):
        """MONTHLY should accept every day of the first date's month"""
        dates = [f"{day:02d}-05-2025" for day in range(1, 32)]
        result = expand_recurrence(Recurrence.MONTHLY, dates)
        assert len(result) == 31
        assert result[-1] == date(2025, 5, 31)

    def test_monthly_rejects_two_months(self):
        """MONTHLY dates spanning two months should fail"""
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.MONTHLY, ["30-04-2025", "01-05-2025"])

    def test_unknown_recurrence_rejected(self):
        """An unknown recurrence kind should fail"""
        with pytest.raises(ValidationException):
            expand_recurrence("YEARLY", ["01-03-2025"])


class TestDateParsing:
    """Tests for strict DD-MM-YYYY parsing"""

    @pytest.mark.parametrize("value", ["2025-03-01", "1-3-2025", "31-02-2025", "01/03/2025", ""])
    def test_malformed_dates_rejected(self, value):
        """Anything but a real DD-MM-YYYY date should fail"""
        with pytest.raises(InvalidDateFormatException):
            expand_recurrence(Recurrence.WEEKLY, [value])

    def test_invalid_date_is_validation_error(self):
        """Date format errors should be validation errors"""
        with pytest.raises(ValidationException):
            expand_recurrence(Recurrence.ONCE, ["32-01-2025"])


class TestOrdering:
    """Tests for deduplication and sorting"""

    def test_sorted_by_calendar_date(self):
        """Dates should come back in calendar order, not string order"""
        result = expand_recurrence(Recurrence.WEEKLY, ["10-03-2025", "02-03-2025", "09-03-2025"])
        assert result == [date(2025, 3, 2), date(2025, 3, 9), date(2025, 3, 10)]

    def test_duplicates_removed(self):
        """Repeated dates should count once"""
        result = expand_recurrence(Recurrence.WEEKLY, ["03-03-2025", "01-03-2025", "03-03-2025"])
        assert result == [date(2025, 3, 1), date(2025, 3, 3)]

    def test_duplicates_do_not_break_once(self):
        """The same date twice is still one date for ONCE"""
        assert expand_recurrence(Recurrence.ONCE, ["01-03-2025", "01-03-2025"]) == [date(2025, 3, 1)]


class TestPastDates:
    """Tests for the past date policy"""

    def test_past_dates_allowed_by_default(self):
        """Past dates should be accepted when the policy allows them"""
        result = expand_recurrence(Recurrence.ONCE, ["01-01-2020"], today=date(2025, 5, 2))
        assert result == [date(2020, 1, 1)]

    def test_past_dates_rejected_when_disabled(self):
        """Past dates should fail when the policy forbids them"""
        with pytest.raises(ValidationException):
            expand_recurrence(
                Recurrence.WEEKLY, ["01-05-2025", "03-05-2025"],
                today=date(2025, 5, 2), allow_past_dates=False
            )

    def test_today_is_not_past(self):
        """Today should pass the strict policy"""
        result = expand_recurrence(
            Recurrence.ONCE, ["02-05-2025"], today=date(2025, 5, 2), allow_past_dates=False
        )
        assert result == [date(2025, 5, 2)]
