"""
Week arithmetic.

Week 1 of a year starts on the year's first Monday and every week runs
Monday → Sunday. Days that fall before the first Monday are counted as
week 1 of the same year. This is NOT ISO-8601 (which would put them in the
previous year's last week); stored triggers and selections are keyed by
these numbers, so the rule must stay stable.

All functions are pure: no clock, no I/O.

Public API
----------
first_monday(year)                      -> date
week_number_of(day)                     -> int
week_start(year, week_number)           -> date
week_end(year, week_number)             -> date
week_range(year, week_number)           -> tuple[date, date]
previous_week(year, week_number)        -> tuple[int, int]
month_bounds(year, month)               -> tuple[date, date]
previous_month(year, month)             -> tuple[int, int]
period_key(tier, year, week_number, month) -> str
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional

DAYS_PER_WEEK = 7


def _check_week(week_number: int) -> None:
    if week_number < 1:
        raise ValueError(f"week_number must be >= 1, got {week_number}")


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")


def first_monday(year: int) -> date:
    jan1 = date(year, 1, 1)
    # weekday(): Monday == 0
    return jan1 + timedelta(days=(7 - jan1.weekday()) % 7)


def week_number_of(day: date) -> int:
    monday = first_monday(day.year)
    if day < monday:
        return 1
    return (day - monday).days // DAYS_PER_WEEK + 1


def week_start(year: int, week_number: int) -> date:
    _check_week(week_number)
    return first_monday(year) + timedelta(days=(week_number - 1) * DAYS_PER_WEEK)


def week_end(year: int, week_number: int) -> date:
    return week_start(year, week_number) + timedelta(days=DAYS_PER_WEEK - 1)


def week_range(year: int, week_number: int) -> tuple[date, date]:
    return week_start(year, week_number), week_end(year, week_number)


def previous_week(year: int, week_number: int) -> tuple[int, int]:
    """(year, week) of the week before; week 1 rolls back into the previous year."""
    _check_week(week_number)
    if week_number > 1:
        return year, week_number - 1
    return year - 1, week_number_of(date(year - 1, 12, 31))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    _check_month(month)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def previous_month(year: int, month: int) -> tuple[int, int]:
    _check_month(month)
    if month == 1:
        return year - 1, 12
    return year, month - 1


def period_key(
    tier: str,
    year: int,
    week_number: Optional[int] = None,
    month: Optional[int] = None,
) -> str:
    """Canonical string for a (tier, period): 2024-W10, 2024-03, 2024."""
    if tier == "weekly":
        if week_number is None:
            raise ValueError("weekly period requires week_number")
        _check_week(week_number)
        return f"{year:04d}-W{week_number:02d}"
    if tier == "monthly":
        if month is None:
            raise ValueError("monthly period requires month")
        _check_month(month)
        return f"{year:04d}-{month:02d}"
    if tier == "yearly":
        return f"{year:04d}"
    raise ValueError(f"unknown tier: {tier!r}")
