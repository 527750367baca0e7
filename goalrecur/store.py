"""Library for managing the lifecycle of recurring goals and their occurrences.

A store is the public API used by the rest of an application. It accepts a
recurrence rule for a goal, materializes the dated occurrences implied by
the rule, and keeps those occurrences up to date as the rule is edited. This
higher level API handles assigning ids, validating rules, keeping user edits
safe from regeneration, and extending occurrences further into the future on
demand.

Here is an example for setting up a `RecurringGoalStore`:

```python
import datetime
from goalrecur.persistence import MemoryRepository
from goalrecur.store import RecurringGoalStore

store = RecurringGoalStore(MemoryRepository())
goal = store.create_recurring_goal(
    "Go for a run",
    "DTSTART;VALUE=DATE:20230501\\nRRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR",
    horizon=datetime.date(2023, 5, 31),
)
for occurrence in store.occurrences(goal.id):
    print(occurrence.date, occurrence.origin)
```

Marking an occurrence as completed, adding notes, or moving it to another
date turns it into an exception. An exception is never removed or replaced
when the rule changes:

```python
first = store.occurrences(goal.id)[0]
store.mark_occurrence(first.id, completed=True)
store.update_rule(goal.id, "DTSTART;VALUE=DATE:20230501\\nRRULE:FREQ=DAILY;INTERVAL=7")
```

Occurrences are materialized through the goal's horizon. Each expansion
past what is already materialized is limited to the configured maximum
horizon, while a goal itself can be queried for as long as it lives.

All operations on the same goal are serialized. Operations on different
goals may run concurrently from multiple threads.
"""

from __future__ import annotations

import contextlib
import datetime
import logging
import threading
from collections.abc import Callable, Generator
from typing import Any

from .calendar_math import ONE_DAY
from .config import EngineConfig
from .exceptions import (
    ExpansionCancelled,
    GoalBusy,
    GoalNotFound,
    HorizonExceeded,
    OccurrenceNotFound,
    PersistenceFailure,
    RecurrenceEngineError,
)
from .expand import expand, series_end
from .parsing.rrule import decode
from .persistence import OccurrenceRepository
from .sync import OccurrenceDiff, reconcile
from .types.goal import Goal
from .types.occurrence import Occurrence, Origin
from .types.recur import RecurrenceRule, validate_rule
from .util import dtstamp_factory

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "RecurringGoalStore",
]


@contextlib.contextmanager
def _persistence(action: str) -> Generator[None, None, None]:
    """Wrap errors raised by the repository in a PersistenceFailure."""
    try:
        yield
    except RecurrenceEngineError:
        raise
    except Exception as err:
        raise PersistenceFailure(f"Failed to {action}: {err}") from err


def _resolve_rule(rule: RecurrenceRule | str) -> RecurrenceRule:
    """Return a validated rule from a rule or its text form."""
    if isinstance(rule, str):
        return decode(rule)
    return validate_rule(rule)


class RecurringGoalStore:
    """A store manages recurring goals and their materialized occurrences."""

    def __init__(
        self,
        repository: OccurrenceRepository,
        config: EngineConfig | None = None,
        dtstamp_fn: Callable[[], datetime.datetime] = lambda: dtstamp_factory(),
    ) -> None:
        """Initialize the RecurringGoalStore."""
        self._repository = repository
        self._config = config or EngineConfig()
        self._dtstamp_fn = dtstamp_fn
        self._locks: dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()

    @contextlib.contextmanager
    def _goal_lock(self, goal_id: str) -> Generator[None, None, None]:
        """Hold the lock for a goal for the duration of the context."""
        with self._locks_lock:
            lock = self._locks.setdefault(goal_id, threading.Lock())
        if not lock.acquire(timeout=self._config.lock_timeout):
            raise GoalBusy(
                f"Timed out after {self._config.lock_timeout}s waiting for "
                f"goal {goal_id}"
            )
        try:
            yield
        finally:
            lock.release()

    def _forget_lock(self, goal_id: str) -> None:
        """Drop the lock of a goal that no longer exists."""
        with self._locks_lock:
            self._locks.pop(goal_id, None)

    def _window_end(
        self, rule: RecurrenceRule, start: datetime.date, end: datetime.date
    ) -> datetime.date:
        """Return the end of an expansion window that starts at start.

        The end is moved back to the last date of the series when the series
        ends first. Raises HorizonExceeded if what remains of the window is
        wider than the maximum horizon.
        """
        if (until := rule.until) is not None and until < end:
            end = until
        max_end = start + self._config.max_horizon
        if (last := series_end(rule, min(end, max_end))) is not None:
            return last
        if end > max_end:
            raise HorizonExceeded(start, end, max_end)
        return end

    def _resync_end(
        self, goal: Goal, rule: RecurrenceRule, end: datetime.date
    ) -> datetime.date:
        """Return the horizon to resynchronize a goal through with a new rule.

        Dates already materialized for the previous rule, from its anchor
        through the stored horizon, do not count toward the maximum horizon.
        Only dates before the previous anchor or past the horizon do.
        """
        if rule.anchor < goal.rule.anchor:
            self._window_end(rule, rule.anchor, min(end, goal.rule.anchor))
        return self._window_end(rule, max(rule.anchor, min(goal.horizon, end)), end)

    def _load_goal(self, goal_id: str) -> Goal:
        with _persistence(f"load goal {goal_id}"):
            goal = self._repository.load_goal(goal_id)
        if goal is None:
            raise GoalNotFound(goal_id)
        return goal

    def _load_occurrence(self, occurrence_id: str) -> Occurrence:
        with _persistence(f"load occurrence {occurrence_id}"):
            occurrence = self._repository.load_occurrence(occurrence_id)
        if occurrence is None:
            raise OccurrenceNotFound(occurrence_id)
        return occurrence

    def _reconcile(
        self,
        goal: Goal,
        rule: RecurrenceRule,
        horizon: datetime.date,
        cancel: threading.Event | None = None,
        window_start: datetime.date | None = None,
    ) -> OccurrenceDiff:
        """Expand the rule up to the horizon and diff against stored occurrences.

        When window_start is set only that part of the series is expanded and
        generated occurrences before it are left alone.
        """

        def checkpoint() -> None:
            if cancel is not None and cancel.is_set():
                raise ExpansionCancelled(
                    f"Expansion of goal {goal.id} through {horizon} was cancelled"
                )

        start = rule.anchor if window_start is None else window_start
        dates = expand(rule, start, horizon, checkpoint)
        checkpoint()
        with _persistence(f"load occurrences of goal {goal.id}"):
            existing = self._repository.load_occurrences(goal.id)
        if window_start is not None:
            existing = [
                occurrence
                for occurrence in existing
                if occurrence.is_exception or occurrence.date >= window_start
            ]
        return reconcile(goal.id, dates, existing)

    def create_recurring_goal(
        self,
        title: str,
        rule: RecurrenceRule | str,
        horizon: datetime.date | None = None,
    ) -> Goal:
        """Create a goal and materialize its occurrences through the horizon.

        The rule may be a `RecurrenceRule` or its text form. When the horizon
        is not specified, occurrences are materialized for the default
        horizon past the anchor. The stored horizon never goes past the last
        date of a bounded series. The goal and its occurrences are stored
        together: if storing the occurrences fails, the goal is removed.
        """
        rule = _resolve_rule(rule)
        if horizon is None:
            horizon = rule.anchor + self._config.default_horizon
        horizon = self._window_end(rule, rule.anchor, horizon)

        goal = Goal(title=title, rule=rule, horizon=horizon, created=self._dtstamp_fn())
        occurrences = [
            Occurrence(goal_id=goal.id, date=value, origin=Origin.GENERATED)
            for value in expand(rule, rule.anchor, horizon)
        ]
        _LOGGER.debug(
            "Creating goal %s with %d occurrences through %s",
            goal.id,
            len(occurrences),
            horizon,
        )
        with self._goal_lock(goal.id), _persistence(f"create goal {goal.id}"):
            self._repository.save_goal(goal)
            try:
                self._repository.apply_diff(goal.id, occurrences, [])
            except Exception:
                self._repository.delete_goal(goal.id)
                self._forget_lock(goal.id)
                raise
        return goal

    def update_rule(
        self,
        goal_id: str,
        new_rule: RecurrenceRule | str,
        horizon: datetime.date | None = None,
    ) -> OccurrenceDiff:
        """Replace the rule of a goal and resynchronize its occurrences.

        Generated occurrences no longer implied by the rule are removed and
        missing ones are created. Exceptions are left untouched. The horizon
        defaults to the horizon the goal is already materialized through.
        Returns the diff that was applied.
        """
        rule = _resolve_rule(new_rule)
        with self._goal_lock(goal_id):
            goal = self._load_goal(goal_id)
            horizon = self._resync_end(
                goal, rule, goal.horizon if horizon is None else horizon
            )

            diff = self._reconcile(goal, rule, horizon)
            updated = goal.model_copy(update={"rule": rule, "horizon": horizon})
            with _persistence(f"update rule of goal {goal_id}"):
                self._repository.save_rule(goal_id, rule)
                try:
                    if horizon != goal.horizon:
                        self._repository.save_goal(updated)
                    self._repository.apply_diff(
                        goal_id, diff.new_occurrences(goal_id), diff.delete_ids
                    )
                except Exception:
                    self._repository.save_goal(goal)
                    raise
        _LOGGER.debug(
            "Updated rule of goal %s: created %d, deleted %d",
            goal_id,
            len(diff.to_create),
            len(diff.to_delete),
        )
        return diff

    def mark_occurrence(
        self,
        occurrence_id: str,
        completed: bool | None = None,
        notes: str | None = None,
        date: datetime.date | None = None,
    ) -> Occurrence:
        """Update an occurrence, turning a generated occurrence into an exception.

        Only the fields that are specified and differ from the stored values
        are changed; when nothing changes the occurrence is returned as is.
        Moving an occurrence to another date removes any generated occurrence
        already on that date. The original generated date stays reserved for
        the exception so that the rule does not fill it in again.
        """
        goal_id = self._load_occurrence(occurrence_id).goal_id
        with self._goal_lock(goal_id):
            occurrence = self._load_occurrence(occurrence_id)
            update: dict[str, Any] = {}
            if completed is not None and completed != occurrence.completed:
                update["completed"] = completed
            if notes is not None and notes != occurrence.notes:
                update["notes"] = notes
            if date is not None and date != occurrence.date:
                update["date"] = date
            if not update:
                return occurrence
            if not occurrence.is_exception:
                update["origin"] = Origin.EXCEPTION
                update["recurrence_date"] = occurrence.date
            new_occurrence = Occurrence.model_validate(
                {**occurrence.model_dump(), **update}
            )

            with _persistence(f"update occurrence {occurrence_id}"):
                twins: list[Occurrence] = []
                if "date" in update:
                    twins = [
                        existing
                        for existing in self._repository.load_occurrences(goal_id)
                        if not existing.is_exception
                        and existing.date == date
                        and existing.id != occurrence_id
                    ]
                if twins:
                    self._repository.apply_diff(
                        goal_id, [], [twin.id for twin in twins]
                    )
                try:
                    self._repository.update_occurrence(new_occurrence)
                except Exception:
                    if twins:
                        self._repository.apply_diff(goal_id, twins, [])
                    raise
        _LOGGER.debug("Updated occurrence %s: %s", occurrence_id, update)
        return new_occurrence

    def occurrences_in_range(
        self,
        goal_id: str,
        start: datetime.date,
        end: datetime.date,
        cancel: threading.Event | None = None,
    ) -> list[Occurrence]:
        """Return the occurrences of a goal between start and end inclusive.

        When the end is past the materialized horizon, occurrences are first
        materialized through the end, or through the last date of a series
        that ends sooner. Setting the cancel event stops that expansion
        between months; nothing is stored unless the expansion of the whole
        window completes.
        """
        if end < start:
            raise ValueError(f"End date {end} is before start date {start}")
        with self._goal_lock(goal_id):
            goal = self._load_goal(goal_id)
            if end > goal.horizon:
                horizon = self._window_end(
                    goal.rule, max(goal.horizon, goal.rule.anchor), end
                )
                if horizon > goal.horizon:
                    self._extend(goal, horizon, cancel)
            with _persistence(f"load occurrences of goal {goal_id}"):
                occurrences = self._repository.load_occurrences(goal_id)
        return sorted(
            (item for item in occurrences if start <= item.date <= end),
            key=lambda item: (item.date, item.id),
        )

    def _extend(
        self, goal: Goal, horizon: datetime.date, cancel: threading.Event | None
    ) -> None:
        """Materialize occurrences of the goal past its horizon."""
        diff = self._reconcile(
            goal, goal.rule, horizon, cancel, window_start=goal.horizon + ONE_DAY
        )
        _LOGGER.debug(
            "Extending goal %s from %s to %s with %d occurrences",
            goal.id,
            goal.horizon,
            horizon,
            len(diff.to_create),
        )
        with _persistence(f"extend goal {goal.id}"):
            self._repository.apply_diff(
                goal.id, diff.new_occurrences(goal.id), diff.delete_ids
            )
            self._repository.save_goal(goal.model_copy(update={"horizon": horizon}))

    def delete_goal(self, goal_id: str) -> None:
        """Delete a goal, its rule, and all of its occurrences including exceptions."""
        with self._goal_lock(goal_id):
            self._load_goal(goal_id)
            with _persistence(f"delete goal {goal_id}"):
                self._repository.delete_goal(goal_id)
            self._forget_lock(goal_id)
        _LOGGER.debug("Deleted goal %s", goal_id)

    def delete_occurrence(self, occurrence_id: str) -> None:
        """Delete a single occurrence.

        Deleting a generated occurrence is temporary: it is created again the
        next time the goal's rule is resynchronized. This is the only way to
        remove an exception without deleting the goal.
        """
        goal_id = self._load_occurrence(occurrence_id).goal_id
        with self._goal_lock(goal_id), _persistence(
            f"delete occurrence {occurrence_id}"
        ):
            self._repository.apply_diff(goal_id, [], [occurrence_id])

    def get_goal(self, goal_id: str) -> Goal:
        """Return a goal with its current rule."""
        return self._load_goal(goal_id)

    def get_rule(self, goal_id: str) -> RecurrenceRule:
        """Return the current rule of a goal."""
        with _persistence(f"load rule of goal {goal_id}"):
            rule = self._repository.load_rule(goal_id)
        if rule is None:
            raise GoalNotFound(goal_id)
        return rule

    def occurrences(self, goal_id: str) -> list[Occurrence]:
        """Return all materialized occurrences of a goal in date order."""
        self._load_goal(goal_id)
        with _persistence(f"load occurrences of goal {goal_id}"):
            occurrences = self._repository.load_occurrences(goal_id)
        return sorted(occurrences, key=lambda item: (item.date, item.id))
