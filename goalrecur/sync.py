"""Reconciliation of generated dates against materialized occurrences.

A rule is expanded into a list of dates, then compared with the occurrences
already stored for the goal. The result is a diff: the dates that need a new
occurrence and the generated occurrences that are no longer implied by the
rule. Computing the diff has no side effects; the persistence collaborator
applies it.

Exceptions (occurrences edited by the user) are never part of a diff. A
date that an exception stands for, either its current date or the generated
date it replaced, is never filled in with a new generated occurrence.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .types.occurrence import Occurrence, Origin

__all__ = [
    "OccurrenceDiff",
    "reconcile",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class OccurrenceDiff:
    """Changes needed to bring stored occurrences in line with a rule."""

    to_create: list[datetime.date] = field(default_factory=list)
    """Dates that need a new generated occurrence, in order."""

    to_delete: list[Occurrence] = field(default_factory=list)
    """Generated occurrences that should be removed."""

    @property
    def is_empty(self) -> bool:
        """Return True if there is nothing to change."""
        return not self.to_create and not self.to_delete

    def new_occurrences(self, goal_id: str) -> list[Occurrence]:
        """Return new generated occurrences for the dates to create."""
        return [
            Occurrence(goal_id=goal_id, date=value, origin=Origin.GENERATED)
            for value in self.to_create
        ]

    @property
    def delete_ids(self) -> list[str]:
        """Return the ids of the occurrences to delete."""
        return [occurrence.id for occurrence in self.to_delete]


def reconcile(
    goal_id: str,
    generated_dates: Iterable[datetime.date],
    existing: Iterable[Occurrence],
) -> OccurrenceDiff:
    """Compute the diff between the generated dates and existing occurrences."""
    wanted = list(dict.fromkeys(generated_dates))
    wanted_set = set(wanted)

    generated: list[Occurrence] = []
    exception_dates: set[datetime.date] = set()
    for occurrence in existing:
        if occurrence.goal_id != goal_id:
            raise ValueError(
                f"Occurrence {occurrence.id} belongs to goal {occurrence.goal_id}, "
                f"not {goal_id}"
            )
        if occurrence.is_exception:
            exception_dates.update(occurrence.occupied_dates)
        else:
            generated.append(occurrence)

    diff = OccurrenceDiff()
    kept: set[datetime.date] = set()
    for occurrence in sorted(generated, key=lambda item: (item.date, item.id)):
        if (
            occurrence.date not in wanted_set
            or occurrence.date in exception_dates
            or occurrence.date in kept
        ):
            diff.to_delete.append(occurrence)
            continue
        kept.add(occurrence.date)

    diff.to_create = [
        value for value in wanted if value not in kept and value not in exception_dates
    ]
    _LOGGER.debug(
        "Reconciled goal %s: %d to create, %d to delete",
        goal_id,
        len(diff.to_create),
        len(diff.to_delete),
    )
    return diff
