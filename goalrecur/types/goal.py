"""Data model for a recurring goal."""

from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..util import dtstamp_factory, uid_factory
from .recur import RecurrenceRule

__all__ = ["Goal"]


class Goal(BaseModel):
    """A goal that repeats according to a recurrence rule."""

    id: str = Field(default_factory=lambda: uid_factory())

    title: str

    rule: RecurrenceRule

    horizon: datetime.date
    """The inclusive last date that occurrences have been materialized for."""

    created: datetime.datetime = Field(default_factory=lambda: dtstamp_factory())

    model_config = ConfigDict(validate_assignment=True)
