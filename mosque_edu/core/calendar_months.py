from __future__ import annotations

import calendar
from datetime import date
from typing import Iterator


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def add_months(year: int, month: int, count: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + count
    return index // 12, index % 12 + 1


def iter_months(start: date, end: date) -> Iterator[tuple[int, int]]:
    """Yield (year, month) for every month from start's month through end, inclusive."""
    year, month = start.year, start.month
    while date(year, month, 1) <= end:
        yield year, month
        year, month = add_months(year, month, 1)


def months_between_inclusive(start: date, end: date) -> int:
    if end < first_of_month(start):
        return 0
    return (end.year - start.year) * 12 + (end.month - start.month) + 1
