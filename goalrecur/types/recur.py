"""Data model for a recurrence rule attached to a recurring goal.

A rule is a compact definition of a repeating date: a frequency, an interval
in units of that frequency, optional filters on the day of the week or day of
the month, and a bound that ends the series. The rule always starts at its
anchor date, which is the first occurrence in the series.

```python
import datetime
from goalrecur.types import Count, Frequency, RecurrenceRule, Weekday

rule = RecurrenceRule(
    frequency=Frequency.WEEKLY,
    weekdays={Weekday.MONDAY, Weekday.FRIDAY},
    bound=Count(count=10),
    anchor=datetime.date(2023, 5, 1),
)
```

Every field combination is checked when the model is built or assigned, so
an invalid rule is never handed to the occurrence generator.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
from typing import Annotated, Any, Literal, Optional, Union

from dateutil import rrule
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..exceptions import InvalidRule

__all__ = [
    "Frequency",
    "Weekday",
    "Unbounded",
    "Count",
    "Until",
    "Bound",
    "RecurrenceRule",
    "validate_rule",
]

_LOGGER = logging.getLogger(__name__)


# Note: This can be StrEnum in python 3.11 and higher
class Frequency(str, enum.Enum):
    """Unit of time that a recurrence rule steps by."""

    DAILY = "DAILY"
    """Repeating goals based on an interval of a day or more."""

    WEEKLY = "WEEKLY"
    """Repeating goals based on an interval of a week or more."""

    MONTHLY = "MONTHLY"
    """Repeating goals based on an interval of a month or more."""

    YEARLY = "YEARLY"
    """Repeating goals based on an interval of a year or more."""


class Weekday(str, enum.Enum):
    """Corresponds to a day of the week.

    Members are declared Monday first so that the position of a member
    matches `datetime.date.weekday()`.
    """

    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"
    SUNDAY = "SU"

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @property
    def index(self) -> int:
        """Return the day of the week with Monday as 0 and Sunday as 6."""
        return _WEEKDAY_ORDER.index(self)

    @classmethod
    def of(cls, day: datetime.date) -> Weekday:
        """Return the day of the week for the specified date."""
        return _WEEKDAY_ORDER[day.weekday()]

    def as_rrule_weekday(self) -> rrule.weekday:
        """Convert the weekday to a dateutil weekday value."""
        return RRULE_WEEKDAY[self]


_WEEKDAY_ORDER = list(Weekday)

RRULE_FREQ = {
    Frequency.DAILY: rrule.DAILY,
    Frequency.WEEKLY: rrule.WEEKLY,
    Frequency.MONTHLY: rrule.MONTHLY,
    Frequency.YEARLY: rrule.YEARLY,
}
RRULE_WEEKDAY = {
    Weekday.MONDAY: rrule.MO,
    Weekday.TUESDAY: rrule.TU,
    Weekday.WEDNESDAY: rrule.WE,
    Weekday.THURSDAY: rrule.TH,
    Weekday.FRIDAY: rrule.FR,
    Weekday.SATURDAY: rrule.SA,
    Weekday.SUNDAY: rrule.SU,
}

RESERVED_PARTS = ("FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY", "COUNT", "UNTIL")
"""RRULE parts that map onto rule fields, in their encoded order."""

# Part names and values that the RRULE grammar can read back
PART_NAME_REGEX = re.compile(r"[A-Za-z0-9-]+")
PART_VALUE_REGEX = re.compile(r"[!-:<-~]+")


class Unbounded(BaseModel):
    """The series repeats forever."""

    kind: Literal["unbounded"] = "unbounded"


class Count(BaseModel):
    """The series ends after a fixed number of occurrences."""

    kind: Literal["count"] = "count"

    count: int = Field(ge=1)
    """Total number of occurrences, including the anchor."""


class Until(BaseModel):
    """The series ends on an inclusive last date."""

    kind: Literal["until"] = "until"

    until: datetime.date
    """The inclusive end date of the recurrence."""


Bound = Annotated[Union[Unbounded, Count, Until], Field(discriminator="kind")]


class RecurrenceRule(BaseModel):
    """A recurrence rule for a goal."""

    frequency: Frequency

    interval: int = Field(default=1, ge=1)
    """Interval at which the recurrence rule repeats."""

    weekdays: frozenset[Weekday] = Field(default_factory=frozenset)
    """Days of the week for a weekly rule.

    When empty, a weekly rule repeats on the day of the week of the anchor.
    """

    month_day: Optional[int] = Field(default=None, ge=1, le=31)
    """Day of the month for a monthly rule.

    Months too short to contain the day are skipped.
    """

    bound: Bound = Field(default_factory=Unbounded)
    """End condition of the series."""

    anchor: datetime.date
    """The first occurrence of the series."""

    extensions: dict[str, str] = Field(default_factory=dict)
    """Unrecognized RRULE parts kept only so that text form round trips."""

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("anchor", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        """Reduce a datetime to its calendar date."""
        if isinstance(value, datetime.datetime):
            return value.date()
        return value

    @field_validator("extensions")
    @classmethod
    def _check_extensions(cls, value: dict[str, str]) -> dict[str, str]:
        """Verify extension parts can be written back out as RRULE parts.

        Part names are case insensitive and are kept in upper case, the same
        way they are decoded.
        """
        result: dict[str, str] = {}
        for key, part_value in value.items():
            if not PART_NAME_REGEX.fullmatch(key):
                raise ValueError(f"Invalid RRULE part name: '{key}'")
            name = key.upper()
            if name in RESERVED_PARTS:
                raise ValueError(f"{key} is a supported RRULE part, not an extension")
            if name in result:
                raise ValueError(f"RRULE part {name} is repeated")
            if not PART_VALUE_REGEX.fullmatch(part_value):
                raise ValueError(f"Invalid RRULE part value for {key}: '{part_value}'")
            result[name] = part_value
        return result

    @model_validator(mode="after")
    def _check_fields(self) -> RecurrenceRule:
        """Verify that the fields are consistent with the frequency."""
        if self.weekdays and self.frequency != Frequency.WEEKLY:
            raise ValueError(
                "weekdays is only allowed with a weekly frequency, "
                f"not {self.frequency.value}"
            )
        if self.month_day is not None and self.frequency != Frequency.MONTHLY:
            raise ValueError(
                "month_day is only allowed with a monthly frequency, "
                f"not {self.frequency.value}"
            )
        if isinstance(self.bound, Until) and self.bound.until < self.anchor:
            raise ValueError(
                f"until {self.bound.until} is before the anchor {self.anchor}"
            )
        return self

    @property
    def count(self) -> int | None:
        """Return the number of occurrences when bounded by a count."""
        if isinstance(self.bound, Count):
            return self.bound.count
        return None

    @property
    def until(self) -> datetime.date | None:
        """Return the last possible date when bounded by an until date."""
        if isinstance(self.bound, Until):
            return self.bound.until
        return None

    def sorted_weekdays(self) -> list[Weekday]:
        """Return the weekdays from Monday to Sunday."""
        return sorted(self.weekdays, key=lambda weekday: weekday.index)

    def as_rrule(self, window_end: datetime.date) -> rrule.rrule:
        """Create a dateutil rrule for the rule, ending no later than window_end.

        The count is not part of the result: the anchor is always the first
        occurrence even when it does not match the filters, so the caller
        counts occurrences itself.
        """
        until = window_end
        if self.until is not None and self.until < until:
            until = self.until
        byweekday: list[rrule.weekday] | None = None
        if self.weekdays:
            byweekday = [
                weekday.as_rrule_weekday() for weekday in self.sorted_weekdays()
            ]
        return rrule.rrule(
            freq=RRULE_FREQ[self.frequency],
            dtstart=self.anchor,
            interval=self.interval,
            until=until,
            wkst=rrule.MO,
            byweekday=byweekday,
            bymonthday=self.month_day,
            cache=False,
        )


# Field names reported for each cross-field check in `_check_fields`
_MODEL_CHECK_FIELDS = {
    "weekdays": "weekdays",
    "month_day": "month_day",
    "until": "bound",
}


def _error_fields(err: ValidationError) -> list[str]:
    """Return the names of the rule fields responsible for the errors."""
    fields: list[str] = []
    for error in err.errors():
        if error["loc"]:
            name = str(error["loc"][0])
        else:
            message = error.get("msg", "")
            name = next(
                (
                    field
                    for key, field in _MODEL_CHECK_FIELDS.items()
                    if f"{key} " in message
                ),
                "rule",
            )
        if name not in fields:
            fields.append(name)
    return fields


def validate_rule(rule: RecurrenceRule | dict[str, Any]) -> RecurrenceRule:
    """Validate a rule or its field values, raising InvalidRule on failure.

    A `RecurrenceRule` is already validated when built, but instances made
    with `model_construct` or loaded from elsewhere are checked again here
    before they are used to materialize anything.
    """
    data = rule.model_dump() if isinstance(rule, RecurrenceRule) else rule
    try:
        return RecurrenceRule.model_validate(data)
    except ValidationError as err:
        fields = _error_fields(err)
        _LOGGER.debug("Rejected recurrence rule %s: %s", data, err)
        raise InvalidRule(
            f"Invalid recurrence rule ({', '.join(fields)}): {err}", fields=fields
        ) from err
