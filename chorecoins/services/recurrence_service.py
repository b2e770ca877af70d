"""
Recurrence expansion.
Turns a recurrence kind plus an explicit DD-MM-YYYY date list into a
validated, deduplicated, calendar-sorted list of dates.
"""
from datetime import date
from typing import Iterable, List, Optional

from chorecoins.constants import Recurrence, WEEKLY_MAX_DATES
from chorecoins.exceptions import ValidationException
from chorecoins.services.date_service import DateService


def _parse_recurrence(recurrence) -> Recurrence:
    try:
        return Recurrence(recurrence)
    except ValueError:
        allowed = ", ".join(r.value for r in Recurrence)
        raise ValidationException("recurrence", f"Must be one of {allowed}")


def expand_recurrence(
    recurrence,
    dates: Iterable[str],
    today: Optional[date] = None,
    allow_past_dates: bool = True
) -> List[date]:
    """
    Validate and sort a recurrence date list.

    Cardinality:
        ONCE, DAILY: exactly one date
        WEEKLY: 1 to 7 dates
        MONTHLY: 1 to N dates, N = days in the month of the first date,
            every date inside that month

    Past dates are accepted unless allow_past_dates is False, in which
    case `today` is required and any earlier date is rejected.

    Raises:
        ValidationException: On a malformed date or wrong cardinality
    """
    kind = _parse_recurrence(recurrence)

    raw_dates = list(dates or [])
    if not raw_dates:
        raise ValidationException("recurrence_dates", "At least one date is required")

    # Deduplicate, preserving first-seen order (MONTHLY keys off the first date)
    unique_strings = list(dict.fromkeys(d.strip() if isinstance(d, str) else d for d in raw_dates))
    parsed = list(dict.fromkeys(DateService.parse_recurrence_date(d) for d in unique_strings))

    count = len(parsed)
    if kind in (Recurrence.ONCE, Recurrence.DAILY):
        if count != 1:
            raise ValidationException(
                "recurrence_dates",
                f"{kind.value} recurrence requires exactly 1 date, got {count}"
            )
    elif kind == Recurrence.WEEKLY:
        if count > WEEKLY_MAX_DATES:
            raise ValidationException(
                "recurrence_dates",
                f"WEEKLY recurrence allows at most {WEEKLY_MAX_DATES} dates, got {count}"
            )
    elif kind == Recurrence.MONTHLY:
        first = parsed[0]
        max_dates = DateService.days_in_month(first)
        if count > max_dates:
            raise ValidationException(
                "recurrence_dates",
                f"MONTHLY recurrence allows at most {max_dates} dates for "
                f"{first.strftime('%m-%Y')}, got {count}"
            )
        for value in parsed:
            if (value.year, value.month) != (first.year, first.month):
                raise ValidationException(
                    "recurrence_dates",
                    f"All MONTHLY dates must fall in {first.strftime('%m-%Y')}; "
                    f"{DateService.format_recurrence_date(value)} does not"
                )

    if not allow_past_dates:
        if today is None:
            raise ValueError("today is required when past dates are not allowed")
        past = [d for d in parsed if d < today]
        if past:
            raise ValidationException(
                "recurrence_dates",
                f"Date {DateService.format_recurrence_date(min(past))} is in the past"
            )

    return sorted(parsed)
