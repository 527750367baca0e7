"""Expansion of a recurrence rule into the dates of its occurrences.

The anchor of a rule is always its first occurrence, even when it does not
match the weekday or day of month filters, because it was chosen explicitly.
The dates that follow it are produced by `dateutil.rrule` for daily and
weekly rules and for monthly rules on a fixed day of the month, which skip
months too short to contain that day.

`dateutil.rrule` skips a date that does not exist in a month instead of
clamping it, so monthly rules without a day of the month and yearly rules
are stepped from the anchor with `relativedelta` instead: January 31st is
followed by February 28th, and February 29th by February 28th.

Expansion is always bounded by the end of the requested window, so an
unbounded rule never produces an infinite sequence. Expansion keeps no state
between calls so the same rule can be expanded for any number of windows.
"""

from __future__ import annotations

import datetime
import itertools
import logging
from collections.abc import Callable, Generator, Iterator

from .calendar_math import step
from .types.recur import Frequency, RecurrenceRule

__all__ = [
    "Checkpoint",
    "expand",
    "iter_occurrences",
    "series_end",
]

_LOGGER = logging.getLogger(__name__)

Checkpoint = Callable[[], None]
"""Invoked between batches of candidates, may raise to stop expansion."""


def _clamps(rule: RecurrenceRule) -> bool:
    """Return True if the rule steps from the anchor clamping to the month end."""
    return rule.frequency == Frequency.YEARLY or (
        rule.frequency == Frequency.MONTHLY and rule.month_day is None
    )


def _candidates(rule: RecurrenceRule, end: datetime.date) -> Iterator[datetime.date]:
    """Yield the dates matching the rule in order, up to end inclusive."""
    if not _clamps(rule):
        for value in rule.as_rrule(end):
            yield value.date()
        return
    for index in itertools.count(1):
        candidate = step(rule.anchor, rule.frequency, index * rule.interval)
        if candidate > end:
            return
        yield candidate


def iter_occurrences(
    rule: RecurrenceRule,
    window_end: datetime.date,
    checkpoint: Checkpoint | None = None,
) -> Generator[datetime.date, None, None]:
    """Yield the occurrence dates of the rule from its anchor up to window_end.

    The checkpoint is invoked each time expansion moves into a new calendar
    month, so that a caller can cancel a long expansion between batches.
    """
    anchor = rule.anchor
    if anchor > window_end:
        return
    yield anchor
    emitted = 1
    count = rule.count
    if count is not None and emitted >= count:
        return

    end = window_end
    if (until := rule.until) is not None and until < end:
        end = until
    last_month = (anchor.year, anchor.month)
    for candidate in _candidates(rule, end):
        if candidate <= anchor:
            continue
        if checkpoint is not None and (candidate.year, candidate.month) != last_month:
            checkpoint()
            last_month = (candidate.year, candidate.month)
        yield candidate
        emitted += 1
        if count is not None and emitted >= count:
            return


def expand(
    rule: RecurrenceRule,
    window_start: datetime.date,
    window_end: datetime.date,
    checkpoint: Checkpoint | None = None,
) -> list[datetime.date]:
    """Return the ordered occurrence dates of the rule within the window.

    The window is inclusive on both ends. A count bound always counts from
    the anchor, regardless of where the window starts.
    """
    if window_end < window_start:
        return []
    result = [
        value
        for value in iter_occurrences(rule, window_end, checkpoint)
        if value >= window_start
    ]
    _LOGGER.debug(
        "Expanded %s over %s to %s: %d occurrences",
        rule.frequency.value,
        window_start,
        window_end,
        len(result),
    )
    return result


def series_end(
    rule: RecurrenceRule, window_end: datetime.date
) -> datetime.date | None:
    """Return the date the series ends on, if it ends by window_end.

    Returns None when the series continues past window_end. A series bounded
    by a count is expanded up to window_end to find out where the count runs
    out.
    """
    if (until := rule.until) is not None:
        return until if until <= window_end else None
    if (count := rule.count) is None:
        return None
    emitted = 0
    last: datetime.date | None = None
    for last in iter_occurrences(rule, window_end):
        emitted += 1
    if emitted < count:
        return None
    return last
