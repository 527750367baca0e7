"""Calendar arithmetic on timezone naive dates.

All values here are `datetime.date` calendar days with no time of day, so
there are no daylight saving transitions that can duplicate or skip a day.
Month and year arithmetic is delegated to `dateutil.relativedelta` which
clamps to the last valid day of the target month, e.g. stepping one month
from January 31st lands on the last day of February.
"""

from __future__ import annotations

import datetime

from dateutil.relativedelta import relativedelta

from .types.recur import Frequency

__all__ = [
    "add_months",
    "add_years",
    "step",
]

ONE_DAY = datetime.timedelta(days=1)
ONE_WEEK = datetime.timedelta(weeks=1)


def add_months(day: datetime.date, months: int) -> datetime.date:
    """Return the date a number of months later, clamped to the month length."""
    return day + relativedelta(months=months)


def add_years(day: datetime.date, years: int) -> datetime.date:
    """Return the date a number of years later, clamping February 29th."""
    return day + relativedelta(years=years)


def step(anchor: datetime.date, frequency: Frequency, steps: int) -> datetime.date:
    """Return the anchor advanced by whole units of the frequency.

    The result is always computed from the anchor rather than from the
    previous step, so that a clamped short month does not shift every
    following value (Jan 31, Feb 28, Mar 31 rather than Mar 28).
    """
    if frequency == Frequency.DAILY:
        return anchor + steps * ONE_DAY
    if frequency == Frequency.WEEKLY:
        return anchor + steps * ONE_WEEK
    if frequency == Frequency.MONTHLY:
        return add_months(anchor, steps)
    if frequency == Frequency.YEARLY:
        return add_years(anchor, steps)
    raise ValueError(f"Unsupported frequency: {frequency}")
