"""Data types used by the recurrence engine."""

from .goal import Goal
from .occurrence import Occurrence, Origin
from .recur import (
    Bound,
    Count,
    Frequency,
    RecurrenceRule,
    Unbounded,
    Until,
    Weekday,
    validate_rule,
)

__all__ = [
    "Bound",
    "Count",
    "Frequency",
    "Goal",
    "Occurrence",
    "Origin",
    "RecurrenceRule",
    "Unbounded",
    "Until",
    "Weekday",
    "validate_rule",
]
