"""Calendar-month bucketing utilities.

Every metric family aligns records on calendar months rather than on exact
dates: spend recorded on the 3rd and a customer acquired on the 27th belong to
the same bucket. The helpers here are deliberately timezone-less; an aware
datetime is bucketed by its own wall-clock fields and is never converted.

Quick Start
-----------
>>> from datetime import datetime
>>> from marketing_finance_audit.foundation.calendar import (
...     month_bucket, months_between, month_range,
... )
>>> month_bucket(datetime(2024, 3, 17, 9, 30))
CalendarMonth(year=2024, month=3)
>>> months_between(datetime(2024, 1, 31), datetime(2024, 2, 1))
1
>>> [str(m) for m in month_range(datetime(2023, 11, 5), datetime(2024, 1, 2))]
['2023-11', '2023-12', '2024-01']
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterator

MONTHS_PER_YEAR = 12


def as_datetime(value: date | datetime) -> datetime:
    """Promote a ``date`` to a midnight ``datetime``; datetimes pass through.

    Raises
    ------
    TypeError
        If ``value`` is neither a date nor a datetime.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def naive(value: datetime) -> datetime:
    """Drop tzinfo while keeping the wall-clock fields."""
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


@dataclass(frozen=True, order=True)
class CalendarMonth:
    """A single calendar month, ordered chronologically.

    Attributes
    ----------
    year:
        Four-digit year.
    month:
        Month number, 1-12.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= MONTHS_PER_YEAR:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")

    @classmethod
    def from_timestamp(cls, value: date | datetime) -> "CalendarMonth":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, text: str) -> "CalendarMonth":
        """Parse a ``YYYY-MM`` string."""
        year, _, month = text.partition("-")
        return cls(int(year), int(month))

    @property
    def ordinal(self) -> int:
        """Months since year 0; differences between ordinals are month offsets."""
        return self.year * MONTHS_PER_YEAR + (self.month - 1)

    @property
    def start(self) -> datetime:
        """First instant of the month (inclusive)."""
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """First instant of the following month (exclusive)."""
        return self.next().start

    def shift(self, months: int) -> "CalendarMonth":
        year, month_index = divmod(self.ordinal + months, MONTHS_PER_YEAR)
        return CalendarMonth(year, month_index + 1)

    def next(self) -> "CalendarMonth":
        return self.shift(1)

    def contains(self, value: date | datetime) -> bool:
        return CalendarMonth.from_timestamp(value) == self

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def month_bucket(timestamp: date | datetime | CalendarMonth) -> CalendarMonth:
    """Truncate a timestamp to its calendar month."""
    if isinstance(timestamp, CalendarMonth):
        return timestamp
    return CalendarMonth.from_timestamp(timestamp)


def months_between(
    start: date | datetime | CalendarMonth, end: date | datetime | CalendarMonth
) -> int:
    """Signed number of calendar-month boundaries crossed from ``start`` to ``end``.

    This is a whole-month difference, so Jan 31 -> Feb 1 is one month while
    Feb 1 -> Feb 28 is zero. The result is negative when ``end`` precedes
    ``start``.
    """
    return month_bucket(end).ordinal - month_bucket(start).ordinal


class MonthRange:
    """Finite, restartable sequence of consecutive calendar months.

    Both bounds are inclusive. The range is computed lazily on each iteration,
    so it can be traversed any number of times. An ``end`` earlier than
    ``start`` gives an empty range.

    Examples
    --------
    >>> months = MonthRange(CalendarMonth(2024, 11), CalendarMonth(2025, 2))
    >>> len(months)
    4
    >>> CalendarMonth(2024, 12) in months
    True
    >>> [str(m) for m in months][-1]
    '2025-02'
    """

    __slots__ = ("first", "last")

    def __init__(self, first: CalendarMonth, last: CalendarMonth) -> None:
        self.first = first
        self.last = last

    def __iter__(self) -> Iterator[CalendarMonth]:
        current = self.first
        while current <= self.last:
            yield current
            current = current.next()

    def __len__(self) -> int:
        return max(0, self.last.ordinal - self.first.ordinal + 1)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, CalendarMonth):
            return False
        return self.first <= item <= self.last

    def __repr__(self) -> str:
        return f"MonthRange({self.first}, {self.last})"


def month_range(
    start: date | datetime | CalendarMonth, end: date | datetime | CalendarMonth
) -> MonthRange:
    """Return the months from ``start``'s bucket through ``end``'s bucket."""
    return MonthRange(month_bucket(start), month_bucket(end))
