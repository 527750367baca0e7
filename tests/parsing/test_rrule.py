"""Tests for encoding and decoding the text form of a rule."""

from __future__ import annotations

import datetime
import itertools

import pytest

from goalrecur.exceptions import MalformedRule, MalformedRuleString
from goalrecur.parsing.rrule import decode, encode
from goalrecur.types import (
    Count,
    Frequency,
    RecurrenceRule,
    Unbounded,
    Until,
    Weekday,
)

ANCHOR = datetime.date(2023, 5, 1)


@pytest.mark.parametrize(
    ("rule", "expected"),
    [
        (
            RecurrenceRule(frequency=Frequency.DAILY, anchor=ANCHOR),
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY",
        ),
        (
            RecurrenceRule(frequency=Frequency.DAILY, interval=7, anchor=ANCHOR),
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;INTERVAL=7",
        ),
        (
            RecurrenceRule(
                frequency=Frequency.WEEKLY,
                weekdays={Weekday.FRIDAY, Weekday.MONDAY, Weekday.WEDNESDAY},
                bound=Count(count=10),
                anchor=ANCHOR,
            ),
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=10",
        ),
        (
            RecurrenceRule(
                frequency=Frequency.MONTHLY,
                interval=2,
                month_day=31,
                bound=Until(until=datetime.date(2023, 12, 31)),
                anchor=datetime.date(2023, 1, 31),
            ),
            "DTSTART;VALUE=DATE:20230131\n"
            "RRULE:FREQ=MONTHLY;INTERVAL=2;BYMONTHDAY=31;UNTIL=20231231",
        ),
        (
            RecurrenceRule(
                frequency=Frequency.YEARLY,
                anchor=datetime.date(2024, 2, 29),
                extensions={"WKST": "SU", "X-SOURCE": "import"},
            ),
            "DTSTART;VALUE=DATE:20240229\nRRULE:FREQ=YEARLY;WKST=SU;X-SOURCE=import",
        ),
    ],
)
def test_encode(rule: RecurrenceRule, expected: str) -> None:
    """Test the canonical text form of a rule."""
    assert encode(rule) == expected


ROUND_TRIP_RULES = [
    RecurrenceRule(frequency=Frequency.DAILY, anchor=ANCHOR),
    RecurrenceRule(
        frequency=Frequency.DAILY,
        interval=3,
        bound=Until(until=ANCHOR),
        anchor=ANCHOR,
    ),
    RecurrenceRule(
        frequency=Frequency.WEEKLY,
        interval=2,
        weekdays=set(Weekday),
        bound=Count(count=1),
        anchor=ANCHOR,
    ),
    RecurrenceRule(frequency=Frequency.WEEKLY, anchor=datetime.date(2023, 5, 7)),
    RecurrenceRule(
        frequency=Frequency.MONTHLY,
        month_day=15,
        bound=Count(count=12),
        anchor=datetime.date(2023, 1, 15),
    ),
    RecurrenceRule(
        frequency=Frequency.YEARLY,
        interval=4,
        bound=Until(until=datetime.date(2040, 2, 29)),
        anchor=datetime.date(2024, 2, 29),
        extensions={"X-GOAL-KIND": "habit"},
    ),
    RecurrenceRule(
        frequency=Frequency.DAILY,
        anchor=ANCHOR,
        extensions={"x-name": "abc", "Wkst": "su"},
    ),
    RecurrenceRule(
        frequency=Frequency.WEEKLY,
        anchor=ANCHOR,
        extensions={"X-URL": "https://example.com/goal?id=1&kind=run", "X-2": "a,b=c"},
    ),
]


def _rule_combinations() -> list[RecurrenceRule]:
    """Return rules covering every combination of supported fields."""
    rules = []
    for frequency, interval, bound, extensions in itertools.product(
        Frequency,
        (1, 3),
        (Unbounded(), Count(count=5), Until(until=datetime.date(2024, 1, 31))),
        ({}, {"x-kind": "habit"}),
    ):
        weekdays_options: list[set[Weekday]] = [set()]
        month_day_options: list[int | None] = [None]
        if frequency == Frequency.WEEKLY:
            weekdays_options.append({Weekday.SUNDAY, Weekday.MONDAY, Weekday.THURSDAY})
        if frequency == Frequency.MONTHLY:
            month_day_options.append(31)
        options = itertools.product(weekdays_options, month_day_options)
        for weekdays, month_day in options:
            rules.append(
                RecurrenceRule(
                    frequency=frequency,
                    interval=interval,
                    weekdays=weekdays,
                    month_day=month_day,
                    bound=bound,
                    anchor=datetime.date(2023, 1, 31),
                    extensions=extensions,
                )
            )
    return rules


@pytest.mark.parametrize("rule", ROUND_TRIP_RULES + _rule_combinations())
def test_round_trip(rule: RecurrenceRule) -> None:
    """Test decoding an encoded rule returns an equal rule."""
    text = encode(rule)
    assert decode(text) == rule
    assert encode(decode(text)) == text


def test_decode_bare_rrule_with_anchor() -> None:
    """Test decoding a bare RRULE value with a separate anchor."""
    rule = decode("FREQ=WEEKLY;BYDAY=MO,WE,FR", anchor=ANCHOR)
    assert rule == RecurrenceRule(
        frequency=Frequency.WEEKLY,
        weekdays={Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY},
        anchor=ANCHOR,
    )
    assert decode("RRULE:FREQ=DAILY;COUNT=3", anchor=ANCHOR).bound == Count(count=3)


def test_decode_lenient_input() -> None:
    """Test other encodings of the same rule are accepted."""
    rule = decode(
        "\r\nDTSTART:20230501T090000\r\n"
        "RRULE:freq=weekly;interval=1;byday=fr,mo;until=20230601T000000Z\r\n"
    )
    assert rule == RecurrenceRule(
        frequency=Frequency.WEEKLY,
        weekdays={Weekday.MONDAY, Weekday.FRIDAY},
        bound=Until(until=datetime.date(2023, 6, 1)),
        anchor=ANCHOR,
    )
    assert rule.bound != Unbounded()
    assert encode(rule) == (
        "DTSTART;VALUE=DATE:20230501\n"
        "RRULE:FREQ=WEEKLY;BYDAY=MO,FR;UNTIL=20230601"
    )


@pytest.mark.parametrize(
    ("text", "match"),
    [
        ("", "empty"),
        ("DTSTART;VALUE=DATE:20230501", "missing RRULE"),
        ("RRULE:FREQ=DAILY", "missing DTSTART"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=HOURLY", "Unknown frequency"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:INTERVAL=2", "missing FREQ"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;INTERVAL=0", "positive"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;INTERVAL=-1", "positive"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;INTERVAL=two", "integer"),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;COUNT=3;UNTIL=20230601",
            "both COUNT and UNTIL",
        ),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;UNTIL=20230601;COUNT=3",
            "both COUNT and UNTIL",
        ),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;COUNT=0", "positive"),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=WEEKLY;BYDAY=MO,XX",
            "Unknown weekday",
        ),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=MONTHLY;BYDAY=1MO",
            "Unknown weekday",
        ),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;FREQ=WEEKLY",
            "more than one FREQ",
        ),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=MONTHLY;BYMONTHDAY=1,15",
            "single BYMONTHDAY",
        ),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;BYDAY=MO", "not valid"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=MONTHLY;BYMONTHDAY=32", "not valid"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;UNTIL=20230401", "not valid"),
        ("DTSTART;VALUE=DATE:2023050\nRRULE:FREQ=DAILY", "Expected DTSTART"),
        ("DTSTART;VALUE=DATE:20230231\nRRULE:FREQ=DAILY", "Invalid DTSTART"),
        ("DTSTART;VALUE=PERIOD:20230501\nRRULE:FREQ=DAILY", "value type"),
        ("DTSTART;VALUE=DATE:20230501\nEXDATE:20230502\nRRULE:FREQ=DAILY", "EXDATE"),
        (
            "DTSTART;VALUE=DATE:20230501\nDTSTART;VALUE=DATE:20230502\n"
            "RRULE:FREQ=DAILY",
            "more than one DTSTART",
        ),
        (
            "DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY\nRRULE:FREQ=WEEKLY",
            "more than one RRULE",
        ),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;;COUNT=2", "Failed to parse"),
        ("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ", "Failed to parse"),
        ("DTSTART 20230501\nRRULE:FREQ=DAILY", "Failed to parse"),
    ],
)
def test_malformed(text: str, match: str) -> None:
    """Test that malformed rule text is reported rather than guessed at."""
    with pytest.raises(MalformedRuleString, match=match):
        decode(text)


def test_malformed_rule_alias() -> None:
    """Test the short exception name refers to the same error."""
    with pytest.raises(MalformedRule) as exc_info:
        decode("DTSTART;VALUE=DATE:20230501\nRRULE:FREQ=DAILY;;COUNT=2")
    assert exc_info.value.detailed_error
