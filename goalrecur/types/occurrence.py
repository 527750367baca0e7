"""Data model for a dated instance of a recurring goal."""

from __future__ import annotations

import datetime
import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..util import uid_factory

__all__ = [
    "Origin",
    "Occurrence",
]


class Origin(str, enum.Enum):
    """How an occurrence came to exist."""

    GENERATED = "GENERATED"
    """Created from the recurrence rule and replaced freely on resynchronization."""

    EXCEPTION = "EXCEPTION"
    """Edited by the user and never touched by resynchronization."""


class Occurrence(BaseModel):
    """A single dated instance of a recurring goal."""

    id: str = Field(default_factory=lambda: uid_factory())
    """Stable identifier assigned when the occurrence is materialized."""

    goal_id: str
    """The goal that owns this occurrence."""

    date: datetime.date
    """The calendar date of the occurrence."""

    completed: bool = False

    notes: Optional[str] = None

    origin: Origin = Origin.GENERATED

    recurrence_date: Optional[datetime.date] = None
    """The date generated by the rule that an exception stands in for.

    This is only set for an exception. It differs from `date` when the
    occurrence was rescheduled and keeps the original generated date from
    being filled in again by the rule.
    """

    model_config = ConfigDict(validate_assignment=True)

    @property
    def is_exception(self) -> bool:
        """Return True if the occurrence is protected from regeneration."""
        return self.origin == Origin.EXCEPTION

    @property
    def occupied_dates(self) -> set[datetime.date]:
        """Return the dates that this occurrence stands for."""
        dates = {self.date}
        if self.recurrence_date is not None:
            dates.add(self.recurrence_date)
        return dates
