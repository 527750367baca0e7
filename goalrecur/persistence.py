"""The persistence contract used by the recurring goal store.

The engine never talks to a database directly. Instead it is handed an
object implementing `OccurrenceRepository`, which loads and saves goals,
rules and occurrences. Any exception raised by a repository is wrapped in a
`goalrecur.exceptions.PersistenceFailure` by the store.

`MemoryRepository` is a complete in process implementation. Rules are kept
in their canonical text form, the same way a relational store would keep
them in a text column, so every load goes through the rule decoder.
"""

from __future__ import annotations

import copy
import logging
from typing import Protocol

from .parsing.rrule import decode, encode
from .types.goal import Goal
from .types.occurrence import Occurrence
from .types.recur import RecurrenceRule

__all__ = [
    "OccurrenceRepository",
    "MemoryRepository",
]

_LOGGER = logging.getLogger(__name__)


class OccurrenceRepository(Protocol):
    """Storage for goals, their rules and their occurrences."""

    def load_goal(self, goal_id: str) -> Goal | None:
        """Return the goal with its rule, or None if it does not exist."""

    def save_goal(self, goal: Goal) -> None:
        """Create or replace a goal and its rule."""

    def delete_goal(self, goal_id: str) -> None:
        """Delete a goal, its rule and all of its occurrences."""

    def load_rule(self, goal_id: str) -> RecurrenceRule | None:
        """Return the rule of the goal, or None if it does not exist."""

    def save_rule(self, goal_id: str, rule: RecurrenceRule) -> None:
        """Replace the rule of an existing goal."""

    def load_occurrences(self, goal_id: str) -> list[Occurrence]:
        """Return all occurrences of the goal."""

    def load_occurrence(self, occurrence_id: str) -> Occurrence | None:
        """Return a single occurrence, or None if it does not exist."""

    def update_occurrence(self, occurrence: Occurrence) -> None:
        """Replace an existing occurrence with the same id."""

    def apply_diff(
        self, goal_id: str, to_create: list[Occurrence], to_delete: list[str]
    ) -> None:
        """Create and delete occurrences of a goal as a single unit."""


class MemoryRepository:
    """An OccurrenceRepository that keeps everything in memory."""

    def __init__(self) -> None:
        """Initialize MemoryRepository."""
        self._goals: dict[str, Goal] = {}
        self._rules: dict[str, str] = {}
        self._occurrences: dict[str, dict[str, Occurrence]] = {}

    def load_goal(self, goal_id: str) -> Goal | None:
        if (goal := self._goals.get(goal_id)) is None:
            return None
        rule = decode(self._rules[goal_id])
        return goal.model_copy(update={"rule": rule})

    def save_goal(self, goal: Goal) -> None:
        self._goals[goal.id] = goal.model_copy(deep=True)
        self._rules[goal.id] = encode(goal.rule)
        self._occurrences.setdefault(goal.id, {})

    def delete_goal(self, goal_id: str) -> None:
        self._goals.pop(goal_id, None)
        self._rules.pop(goal_id, None)
        removed = self._occurrences.pop(goal_id, {})
        _LOGGER.debug("Deleted goal %s with %d occurrences", goal_id, len(removed))

    def load_rule(self, goal_id: str) -> RecurrenceRule | None:
        if (text := self._rules.get(goal_id)) is None:
            return None
        return decode(text)

    def save_rule(self, goal_id: str, rule: RecurrenceRule) -> None:
        if goal_id not in self._goals:
            raise KeyError(f"No goal with id {goal_id}")
        self._rules[goal_id] = encode(rule)

    def load_occurrences(self, goal_id: str) -> list[Occurrence]:
        return [
            occurrence.model_copy()
            for occurrence in self._occurrences.get(goal_id, {}).values()
        ]

    def load_occurrence(self, occurrence_id: str) -> Occurrence | None:
        for occurrences in self._occurrences.values():
            if (occurrence := occurrences.get(occurrence_id)) is not None:
                return occurrence.model_copy()
        return None

    def update_occurrence(self, occurrence: Occurrence) -> None:
        occurrences = self._occurrences.get(occurrence.goal_id, {})
        if occurrence.id not in occurrences:
            raise KeyError(f"No occurrence with id {occurrence.id}")
        occurrences[occurrence.id] = occurrence.model_copy()

    def apply_diff(
        self, goal_id: str, to_create: list[Occurrence], to_delete: list[str]
    ) -> None:
        if goal_id not in self._goals:
            raise KeyError(f"No goal with id {goal_id}")
        # Changes are made on a copy that replaces the stored set only on success
        occurrences = copy.copy(self._occurrences[goal_id])
        for occurrence_id in to_delete:
            if occurrences.pop(occurrence_id, None) is None:
                raise KeyError(f"No occurrence with id {occurrence_id}")
        for occurrence in to_create:
            if occurrence.id in occurrences:
                raise KeyError(f"Occurrence id {occurrence.id} already exists")
            occurrences[occurrence.id] = occurrence.model_copy()
        self._occurrences[goal_id] = occurrences
