"""
Cutoff Period Calculator

Maps a date and the target's two cutoff days to the period containing
that date. Pure functions, no I/O.

A cutoff day is 1-28, or 0 (CUTOFF_LAST_DAY) for the last calendar day
of the month. With cutoffs [c1, c2] (sorted after resolving 0) and
day-of-month d:

    d <= c1        ->  [1st, c1]
    c1 < d <= c2   ->  [c1 + 1, c2]
    d > c2         ->  [c2 + 1, c1 of next month]

The last case only happens when neither cutoff is the last day, and it
ends on c1 of the next month. Cutoffs that resolve to the same day
(e.g. [28, 0] in February) leave a single period from the 1st.
"""

import calendar
from datetime import date

from money_mates.models.ledger import CUTOFF_LAST_DAY, PeriodRange


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def validate_cutoff_days(cutoff_days: list[int]) -> None:
    """
    Raises:
        ValueError: Unless there are exactly two distinct days, each 0 or 1-28
    """
    if len(cutoff_days) != 2:
        raise ValueError(f"Expected two cutoff days, got {len(cutoff_days)}")
    for day in cutoff_days:
        if day != CUTOFF_LAST_DAY and not 1 <= day <= 28:
            raise ValueError(f"Cutoff day {day} must be between 1 and 28, or 0 for the last day")
    if cutoff_days[0] == cutoff_days[1]:
        raise ValueError("Cutoff days must be two different days")


def resolve_cutoff_days(year: int, month: int, cutoff_days: list[int]) -> tuple[int, int]:
    """Replace the last-day sentinel with the real day and sort ascending."""
    last_day = last_day_of_month(year, month)
    resolved = sorted(last_day if day == CUTOFF_LAST_DAY else day for day in cutoff_days)
    return resolved[0], resolved[1]


def get_cutoff_period(reference: date, cutoff_days: list[int]) -> PeriodRange:
    """
    The cutoff period containing the reference date.

    Usage:
        get_cutoff_period(date(2025, 4, 20), [15, 0])
        # PeriodRange(start=2025-04-16, end=2025-04-30)
    """
    validate_cutoff_days(cutoff_days)
    year, month, day = reference.year, reference.month, reference.day
    first, second = resolve_cutoff_days(year, month, cutoff_days)

    if day <= first:
        return PeriodRange(start=date(year, month, 1), end=date(year, month, first))
    if day <= second:
        return PeriodRange(start=date(year, month, first + 1), end=date(year, month, second))

    next_year, next_month = _next_month(year, month)
    if first == last_day_of_month(year, month):
        end_day = last_day_of_month(next_year, next_month)
    else:
        end_day = first
    return PeriodRange(
        start=date(year, month, second + 1),
        end=date(next_year, next_month, end_day),
    )


def format_period_id(end_date: date) -> str:
    """Deterministic id of a closed period: its end date as YYYY-MM-DD."""
    return end_date.isoformat()
