"""Library for encoding and decoding the text form of a recurrence rule.

The text form is the persisted representation of a rule and is a pair of
rfc5545 content lines: the anchor date as a DTSTART property, followed by
the RRULE property. For example:

  DTSTART;VALUE=DATE:20230501
  RRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=10

Encoding always writes the parts in the same order (FREQ, INTERVAL, BYDAY,
BYMONTHDAY, then COUNT or UNTIL, then any extension parts) so that the same
rule always serializes to the same string and strings can be compared
directly to detect changes.

This grammar is defined using pyparsing. The responsibility of the grammar
is to split lines into names, parameters and rule parts. The meaning of the
parts is handled by `decode` which builds the pydantic model.
"""

# mypy: allow-any-generics

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field

from pydantic import ValidationError
from pyparsing import (
    Group,
    ParseException,
    ParserElement,
    ParseResults,
    Word,
    ZeroOrMore,
    alphanums,
    printables,
)

from ..exceptions import MalformedRuleString
from ..types.recur import (
    Count,
    Frequency,
    RecurrenceRule,
    Unbounded,
    Until,
    Weekday,
)

__all__ = [
    "encode",
    "decode",
]

_LOGGER = logging.getLogger(__name__)

DTSTART = "DTSTART"
RRULE = "RRULE"

PARSE_NAME = "name"
PARSE_VALUE = "value"
PARSE_PARAMS = "params"
PARSE_PART_NAME = "part_name"
PARSE_PART_VALUE = "part_value"

DATE_REGEX = re.compile(r"^([0-9]{4})([0-9]{2})([0-9]{2})(T[0-9]{6}Z?)?$")
_FREQUENCIES = {frequency.value: frequency for frequency in Frequency}
_WEEKDAYS = {weekday.value: weekday for weekday in Weekday}


@dataclass
class ParsedContentLine:
    """A content line split into its name, parameters and value."""

    name: str
    value: str
    params: dict[str, str] = field(default_factory=dict)


def _create_contentline_parser() -> ParserElement:
    """Create a parser for a single content line."""
    name = Word(alphanums + "-")
    param = Group(
        Word(alphanums + "-").set_results_name(PARSE_PART_NAME)
        + "="
        + Word(alphanums + "-").set_results_name(PARSE_PART_VALUE)
    )
    contentline = (
        name.set_results_name(PARSE_NAME)
        + Group(ZeroOrMore(";" + param)).set_results_name(PARSE_PARAMS)
        + ":"
        + Word(printables).set_results_name(PARSE_VALUE)
    )
    contentline.set_whitespace_chars("")
    return contentline


def _create_rrule_parser() -> ParserElement:
    """Create a parser for the NAME=VALUE;NAME=VALUE parts of an RRULE."""
    part = Group(
        Word(alphanums + "-").set_results_name(PARSE_PART_NAME)
        + "="
        + Word(printables, exclude_chars=";").set_results_name(PARSE_PART_VALUE)
    )
    rrule_value = part + ZeroOrMore(";" + part)
    rrule_value.set_whitespace_chars("")
    return rrule_value


_CONTENTLINE_PARSER = _create_contentline_parser()
_RRULE_PARSER = _create_rrule_parser()


def _parse(parser: ParserElement, text: str) -> ParseResults:
    """Run the parser, converting parse errors."""
    try:
        return parser.parse_string(text, parse_all=True)
    except ParseException as err:
        raise MalformedRuleString(
            f"Failed to parse recurrence rule: '{text}'", detailed_error=str(err)
        ) from err


def _parse_contentline(line: str) -> ParsedContentLine:
    result = _parse(_CONTENTLINE_PARSER, line)
    params: dict[str, str] = {}
    for param in result[PARSE_PARAMS]:
        if not isinstance(param, ParseResults):
            continue
        params[param[PARSE_PART_NAME].upper()] = param[PARSE_PART_VALUE]
    return ParsedContentLine(
        name=result[PARSE_NAME].upper(),
        value=result[PARSE_VALUE],
        params=params,
    )


def _parse_rrule_parts(value: str) -> list[tuple[str, str]]:
    """Split an RRULE value into an ordered list of (NAME, VALUE) parts."""
    result = _parse(_RRULE_PARSER, value)
    parts: list[tuple[str, str]] = []
    seen: set[str] = set()
    for part in result:
        if not isinstance(part, ParseResults):
            continue
        name = part[PARSE_PART_NAME].upper()
        if name in seen:
            raise MalformedRuleString(
                f"Recurrence rule has more than one {name} part: '{value}'"
            )
        seen.add(name)
        parts.append((name, part[PARSE_PART_VALUE]))
    return parts


def _parse_date(name: str, value: str) -> datetime.date:
    """Parse a DATE value, dropping the time of a DATE-TIME value."""
    if not (match := DATE_REGEX.fullmatch(value)):
        raise MalformedRuleString(f"Expected {name} to be a date: '{value}'")
    year, month, day, _ = match.groups()
    try:
        return datetime.date(int(year), int(month), int(day))
    except ValueError as err:
        raise MalformedRuleString(
            f"Invalid {name} date: '{value}'", detailed_error=str(err)
        ) from err


def _parse_positive_int(name: str, value: str) -> int:
    try:
        result = int(value)
    except ValueError as err:
        raise MalformedRuleString(
            f"Expected {name} to be an integer: '{value}'"
        ) from err
    if result < 1:
        raise MalformedRuleString(f"Expected {name} to be positive: '{value}'")
    return result


def _encode_date(value: datetime.date) -> str:
    return value.strftime("%Y%m%d")


def encode_rrule_value(rule: RecurrenceRule) -> str:
    """Return the RRULE value of the rule, without the anchor."""
    parts = [f"FREQ={rule.frequency.value}"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.weekdays:
        parts.append("BYDAY=" + ",".join(str(day) for day in rule.sorted_weekdays()))
    if rule.month_day is not None:
        parts.append(f"BYMONTHDAY={rule.month_day}")
    if (count := rule.count) is not None:
        parts.append(f"COUNT={count}")
    elif (until := rule.until) is not None:
        parts.append(f"UNTIL={_encode_date(until)}")
    parts.extend(f"{key}={value}" for key, value in rule.extensions.items())
    return ";".join(parts)


def encode(rule: RecurrenceRule) -> str:
    """Encode the rule as DTSTART and RRULE content lines."""
    return "\n".join(
        [
            f"{DTSTART};VALUE=DATE:{_encode_date(rule.anchor)}",
            f"{RRULE}:{encode_rrule_value(rule)}",
        ]
    )


def decode(  # pylint: disable=too-many-branches
    text: str, anchor: datetime.date | None = None
) -> RecurrenceRule:
    """Decode the text form of a rule into a RecurrenceRule.

    The text is normally the output of `encode`. A bare RRULE value such as
    'FREQ=DAILY;COUNT=3' is also accepted when the anchor is passed
    separately. Raises MalformedRuleString when the text can't be decoded
    into a valid rule.
    """
    lines = [line.strip() for line in re.split("\r?\n", text) if line.strip()]
    if not lines:
        raise MalformedRuleString("Recurrence rule is empty")

    rrule_value: str | None = None
    if len(lines) == 1 and not lines[0].upper().startswith((f"{RRULE}:", DTSTART)):
        rrule_value = lines[0]
    else:
        for line in lines:
            contentline = _parse_contentline(line)
            if contentline.name == DTSTART:
                if anchor is not None:
                    raise MalformedRuleString(
                        f"Recurrence rule has more than one {DTSTART}"
                    )
                value_type = contentline.params.get("VALUE", "DATE")
                if value_type.upper() not in ("DATE", "DATE-TIME"):
                    raise MalformedRuleString(
                        f"Unsupported {DTSTART} value type: {value_type}"
                    )
                anchor = _parse_date(DTSTART, contentline.value)
            elif contentline.name == RRULE:
                if rrule_value is not None:
                    raise MalformedRuleString(
                        f"Recurrence rule has more than one {RRULE}"
                    )
                rrule_value = contentline.value
            else:
                raise MalformedRuleString(
                    f"Unsupported property in recurrence rule: {contentline.name}"
                )
    if rrule_value is None:
        raise MalformedRuleString(f"Recurrence rule is missing {RRULE}: '{text}'")
    if anchor is None:
        raise MalformedRuleString(f"Recurrence rule is missing {DTSTART}: '{text}'")

    data: dict = {"anchor": anchor, "extensions": {}}
    for name, value in _parse_rrule_parts(rrule_value):
        if name == "FREQ":
            if (frequency := _FREQUENCIES.get(value.upper())) is None:
                raise MalformedRuleString(
                    f"Unknown frequency in recurrence rule: '{value}'"
                )
            data["frequency"] = frequency
        elif name == "INTERVAL":
            data["interval"] = _parse_positive_int(name, value)
        elif name == "BYDAY":
            weekdays = []
            for token in value.split(","):
                if (weekday := _WEEKDAYS.get(token.upper())) is None:
                    raise MalformedRuleString(
                        f"Unknown weekday in recurrence rule: '{token}'"
                    )
                weekdays.append(weekday)
            data["weekdays"] = frozenset(weekdays)
        elif name == "BYMONTHDAY":
            if "," in value:
                raise MalformedRuleString(
                    f"Only a single BYMONTHDAY value is supported: '{value}'"
                )
            data["month_day"] = _parse_positive_int(name, value)
        elif name in ("COUNT", "UNTIL"):
            if "bound" in data:
                raise MalformedRuleString(
                    f"Recurrence rule can't have both COUNT and UNTIL: '{rrule_value}'"
                )
            if name == "COUNT":
                data["bound"] = Count(count=_parse_positive_int(name, value))
            else:
                data["bound"] = Until(until=_parse_date(name, value))
        else:
            data["extensions"][name] = value
    if "frequency" not in data:
        raise MalformedRuleString(f"Recurrence rule is missing FREQ: '{rrule_value}'")
    data.setdefault("bound", Unbounded())

    try:
        rule = RecurrenceRule.model_validate(data)
    except ValidationError as err:
        raise MalformedRuleString(
            f"Recurrence rule is not valid: '{rrule_value}'", detailed_error=str(err)
        ) from err
    _LOGGER.debug("Decoded recurrence rule %s", rule)
    return rule
