"""Exceptions for the goalrecur library."""

from __future__ import annotations

import datetime


class RecurrenceEngineError(Exception):
    """Base exception for all goalrecur errors."""


class InvalidRule(RecurrenceEngineError):
    """Exception raised when a recurrence rule has contradictory fields.

    The 'fields' attribute names the rule fields that failed validation so
    that a caller can report a field-level reason back to the user. Rules are
    always checked before anything is persisted.
    """

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        """Initialize InvalidRule with a message and offending fields."""
        super().__init__(message)
        self.message = message
        self.fields = fields or []


class MalformedRuleString(RecurrenceEngineError):
    """Exception raised when decoding the text form of a recurrence rule.

    The 'message' attribute contains a human-readable message about the
    error that occurred. The 'detailed_error' attribute can provide additional
    information about the error, such as the parser output, useful for
    debugging stored values that can't be read back.
    """

    def __init__(self, message: str, *, detailed_error: str | None = None) -> None:
        """Initialize the MalformedRuleString with a message."""
        super().__init__(message)
        self.message = message
        self.detailed_error = detailed_error


MalformedRule = MalformedRuleString


class GoalNotFound(RecurrenceEngineError):
    """Exception raised when a goal id does not exist."""

    def __init__(self, goal_id: str) -> None:
        super().__init__(f"No existing goal with id: {goal_id}")
        self.goal_id = goal_id


class OccurrenceNotFound(RecurrenceEngineError):
    """Exception raised when an occurrence id does not exist."""

    def __init__(self, occurrence_id: str) -> None:
        super().__init__(f"No existing occurrence with id: {occurrence_id}")
        self.occurrence_id = occurrence_id


class HorizonExceeded(RecurrenceEngineError):
    """Exception raised when an expansion window is wider than the configured cap.

    The window starts where occurrences are not yet materialized. This is a
    configuration error and the window is never silently truncated.
    """

    def __init__(
        self, start: datetime.date, end: datetime.date, max_end: datetime.date
    ) -> None:
        super().__init__(
            f"Expansion window {start} to {end} exceeds the maximum horizon {max_end}"
        )
        self.start = start
        self.end = end
        self.max_end = max_end


class PersistenceFailure(RecurrenceEngineError):
    """Exception wrapping an error raised by the persistence collaborator.

    The engine does not retry. The operation that failed must be retried
    as a whole by the caller.
    """


class GoalBusy(RecurrenceEngineError):
    """Exception raised when another operation holds the goal for too long."""


class ExpansionCancelled(RecurrenceEngineError):
    """Exception raised when a caller cancels an in progress expansion.

    Nothing from a cancelled expansion is persisted.
    """
