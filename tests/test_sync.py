"""Tests for reconciling generated dates with stored occurrences."""

from __future__ import annotations

import datetime

import pytest

from goalrecur.sync import OccurrenceDiff, reconcile
from goalrecur.types import Occurrence, Origin

GOAL_ID = "goal-1"


def day(value: int) -> datetime.date:
    """Return a date in May 2023."""
    return datetime.date(2023, 5, value)


def generated(value: int) -> Occurrence:
    """Return a generated occurrence."""
    return Occurrence(goal_id=GOAL_ID, date=day(value))


def exception(value: int, recurrence_date: int | None = None) -> Occurrence:
    """Return an occurrence edited by the user."""
    return Occurrence(
        goal_id=GOAL_ID,
        date=day(value),
        origin=Origin.EXCEPTION,
        completed=True,
        recurrence_date=day(recurrence_date or value),
    )


def apply(existing: list[Occurrence], diff: OccurrenceDiff) -> list[Occurrence]:
    """Apply a diff the way a repository would."""
    delete_ids = set(diff.delete_ids)
    return [
        occurrence for occurrence in existing if occurrence.id not in delete_ids
    ] + diff.new_occurrences(GOAL_ID)


def test_empty() -> None:
    """Test reconciling with nothing stored creates every date."""
    diff = reconcile(GOAL_ID, [day(1), day(8)], [])
    assert diff.to_create == [day(1), day(8)]
    assert diff.to_delete == []
    assert not diff.is_empty


def test_create_and_delete() -> None:
    """Test dates no longer generated are deleted and new ones created."""
    existing = [generated(1), generated(3), generated(5)]
    diff = reconcile(GOAL_ID, [day(1), day(8)], existing)
    assert diff.to_create == [day(8)]
    assert diff.to_delete == [existing[1], existing[2]]
    assert diff.delete_ids == [existing[1].id, existing[2].id]


def test_exception_wins() -> None:
    """Test that a date held by an exception is never created or deleted."""
    kept = exception(3)
    existing = [generated(1), kept]
    diff = reconcile(GOAL_ID, [day(1), day(3), day(5)], existing)
    assert diff.to_create == [day(5)]
    assert diff.to_delete == []

    # The exception survives even when the rule no longer generates its date
    diff = reconcile(GOAL_ID, [day(8)], existing)
    assert diff.to_create == [day(8)]
    assert diff.to_delete == [existing[0]]


def test_rescheduled_exception_holds_original_date() -> None:
    """Test a moved exception keeps its original date from being filled in."""
    existing = [exception(4, recurrence_date=3)]
    diff = reconcile(GOAL_ID, [day(1), day(3), day(5)], existing)
    assert diff.to_create == [day(1), day(5)]


def test_generated_twin_of_exception_is_removed() -> None:
    """Test a generated occurrence on an exception's date is deleted."""
    twin = generated(3)
    existing = [exception(3), twin]
    diff = reconcile(GOAL_ID, [day(3)], existing)
    assert diff.to_create == []
    assert diff.to_delete == [twin]


def test_duplicates_are_removed() -> None:
    """Test only one generated occurrence is kept per date."""
    first = generated(1)
    second = generated(1)
    diff = reconcile(GOAL_ID, [day(1)], [second, first])
    assert diff.to_create == []
    assert diff.to_delete == [second]


def test_duplicate_generated_dates() -> None:
    """Test repeated generated dates are only created once."""
    diff = reconcile(GOAL_ID, [day(1), day(1), day(2)], [])
    assert diff.to_create == [day(1), day(2)]


@pytest.mark.parametrize(
    ("dates", "existing"),
    [
        ([day(1), day(3), day(5)], []),
        ([day(1), day(8)], [generated(1), generated(3), exception(5)]),
        ([day(3)], [exception(3), generated(3), generated(3)]),
        ([], [generated(2), exception(4, recurrence_date=2)]),
    ],
)
def test_idempotent(dates: list[datetime.date], existing: list[Occurrence]) -> None:
    """Test reconciling again after applying a diff changes nothing."""
    first = reconcile(GOAL_ID, dates, existing)
    second = reconcile(GOAL_ID, dates, apply(existing, first))
    assert second.is_empty


def test_other_goal_rejected() -> None:
    """Test occurrences from another goal are a programming error."""
    other = Occurrence(goal_id="goal-2", date=day(1))
    with pytest.raises(ValueError, match="goal-2"):
        reconcile(GOAL_ID, [day(1)], [other])


def test_new_occurrences() -> None:
    """Test building new generated occurrences from a diff."""
    diff = OccurrenceDiff(to_create=[day(1), day(2)])
    occurrences = diff.new_occurrences(GOAL_ID)
    assert [occurrence.date for occurrence in occurrences] == [day(1), day(2)]
    assert all(occurrence.origin == Origin.GENERATED for occurrence in occurrences)
    assert all(not occurrence.completed for occurrence in occurrences)
    assert len({occurrence.id for occurrence in occurrences}) == 2
