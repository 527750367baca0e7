"""A recurrence engine for recurring goals.

A recurring goal carries a compact recurrence rule (a frequency, an
interval, optional weekday or day of month filters, and a count or end date
bound). This library expands the rule into concrete dated occurrences, keeps
the stored occurrences in sync as the rule changes, and protects occurrences
that were edited by the user from being regenerated.

See `goalrecur.store.RecurringGoalStore` for the main entry point.
"""

__all__ = [
    "calendar_math",
    "config",
    "exceptions",
    "expand",
    "parsing",
    "persistence",
    "store",
    "sync",
    "types",
    "util",
]
