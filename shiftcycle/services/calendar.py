"""Calendar arithmetic shared by the resolver, generator and cache."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterator, List, Tuple


def days_between(start: date, end: date) -> int:
    """Signed number of days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end - start).days


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive, ascending."""
    current = start
    one_day = timedelta(days=1)
    while current <= end:
        yield current
        current += one_day


def add_months(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by ``delta`` months."""
    index = year * 12 + (month - 1) + delta
    new_year, new_month0 = divmod(index, 12)
    return new_year, new_month0 + 1


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def months_covering(start: date, end: date) -> List[Tuple[int, int]]:
    """
    List the (year, month) pairs touched by an inclusive date range.

    Args:
        start: First date of the range
        end: Last date of the range (inclusive)

    Returns:
        Ascending list of (year, month) pairs; empty if start > end
    """
    if start > end:
        return []
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        year, month = add_months(year, month, 1)
    return months


def month_distance(a: Tuple[int, int], b: Tuple[int, int]) -> int:
    """Number of months from ``a`` to ``b`` (signed)."""
    return (b[0] * 12 + b[1]) - (a[0] * 12 + a[1])


def parse_month(value: str) -> Tuple[int, int]:
    """Parse a ``YYYY-MM`` string into a (year, month) pair."""
    try:
        year_str, month_str = value.strip().split("-")
        year, month = int(year_str), int(month_str)
    except ValueError:
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{value}', month must be 1-12")
    return year, month
