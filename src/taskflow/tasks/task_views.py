# src/taskflow/tasks/task_views.py

"""
Derived views over the task store.

Everything here is a pure function of (tasks, filter[, today]). DerivedViews only
adds memoisation keyed on the store version, so a value is recomputed when the
store delivers a new snapshot or the filter changes, and at no other time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from .task_models import Task, TaskCategory, TaskStatus, parse_date
from .task_store import TaskStore

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True, slots=True)
class TaskFilter:
    """Conjunction of four predicates. None means "all" for that dimension."""

    search: str = ""
    category: TaskCategory | None = None
    status: TaskStatus | None = None
    date: date | None = None

    @classmethod
    def parse(
        cls,
        *,
        search: str = "",
        category: str | None = None,
        status: str | None = None,
        date: str | None = None,
    ) -> TaskFilter:
        """Build a filter from user-facing strings ("all"/"" meaning no restriction)."""
        return cls(
            search=search or "",
            category=None if _is_all(category) else TaskCategory(str(category)),
            status=None if _is_all(status) else TaskStatus(str(status)),
            date=None if _is_all(date) else parse_date(date),
        )

    @property
    def is_empty(self) -> bool:
        return not self.search and self.category is None and self.status is None and self.date is None


def _is_all(raw: str | None) -> bool:
    return raw is None or str(raw).strip().lower() in ("", ALL)


@dataclass(frozen=True, slots=True)
class TaskStats:
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    tasks_today: int = 0
    completed_today: int = 0
    hours_today: float = 0.0


# ---- pure functions ----


def matches_search(task: Task, term: str) -> bool:
    """Case-insensitive substring match on title, description, tags and project."""
    if not term:
        return True
    needle = term.lower()
    haystacks = (task.title, task.description, " ".join(task.tags), task.project)
    return any(needle in h.lower() for h in haystacks if h)


def passes_filter(task: Task, flt: TaskFilter) -> bool:
    return (
        matches_search(task, flt.search)
        and (flt.category is None or task.category == flt.category)
        and (flt.status is None or task.status == flt.status)
        and (flt.date is None or task.date == flt.date)
    )


def filter_tasks(tasks: Iterable[Task], flt: TaskFilter) -> tuple[Task, ...]:
    """Order-preserving subsequence of tasks passing flt."""
    return tuple(t for t in tasks if passes_filter(t, flt))


def task_duration_hours(task: Task) -> float:
    """
    end_time - start_time on the task's own date, in hours.

    0.0 when either bound is missing or the bounds are inverted.
    """
    if task.start_time is None or task.end_time is None:
        return 0.0
    start = datetime.combine(task.date, task.start_time)
    end = datetime.combine(task.date, task.end_time)
    seconds = (end - start).total_seconds()
    return seconds / 3600.0 if seconds > 0 else 0.0


def compute_stats(tasks: Sequence[Task], today: date) -> TaskStats:
    """Aggregate over the whole store (not the filtered view)."""
    completed = sum(1 for t in tasks if t.status is TaskStatus.COMPLETED)
    todays = [t for t in tasks if t.date == today]
    hours = sum(task_duration_hours(t) for t in todays)
    return TaskStats(
        total_tasks=len(tasks),
        completed_tasks=completed,
        pending_tasks=len(tasks) - completed,
        tasks_today=len(todays),
        completed_today=sum(1 for t in todays if t.status is TaskStatus.COMPLETED),
        hours_today=round(hours, 1),
    )


def distinct_projects(tasks: Iterable[Task]) -> tuple[str, ...]:
    """Non-empty project names, each once, in first-seen order."""
    seen: dict[str, None] = {}
    for t in tasks:
        if t.project:
            seen.setdefault(t.project, None)
    return tuple(seen)


# ---- memoised views bound to a store ----


class DerivedViews:
    """
    Filter state + memoised derived values for one TaskStore.

    Each cache holds a single (key, value) pair:
    - filtered: key = (store version, filter)
    - stats:    key = (store version, today)
    - projects: key = store version
    """

    def __init__(self, store: TaskStore, *, today: Callable[[], date] = date.today) -> None:
        self._store = store
        self._today = today
        self._filter = TaskFilter()
        self._filtered_cache: tuple[Any, tuple[Task, ...]] | None = None
        self._stats_cache: tuple[Any, TaskStats] | None = None
        self._projects_cache: tuple[Any, tuple[str, ...]] | None = None
        self.recomputations = 0

    @property
    def filter(self) -> TaskFilter:
        return self._filter

    def set_filter(self, **changes: Any) -> TaskFilter:
        """Replace one or more filter fields, e.g. set_filter(category=TaskCategory.TESTING)."""
        new = replace(self._filter, **changes)
        if new != self._filter:
            logger.debug("Filter changed %s -> %s", self._filter, new)
            self._filter = new
        return self._filter

    def clear_filter(self) -> None:
        self._filter = TaskFilter()

    def filtered(self) -> tuple[Task, ...]:
        key = (self._store.version, self._filter)
        if self._filtered_cache is None or self._filtered_cache[0] != key:
            self.recomputations += 1
            value = filter_tasks(self._store.current_tasks(), self._filter)
            self._filtered_cache = (key, value)
        return self._filtered_cache[1]

    def stats(self) -> TaskStats:
        key = (self._store.version, self._today())
        if self._stats_cache is None or self._stats_cache[0] != key:
            value = compute_stats(self._store.current_tasks(), key[1])
            self._stats_cache = (key, value)
        return self._stats_cache[1]

    def projects(self) -> tuple[str, ...]:
        key = self._store.version
        if self._projects_cache is None or self._projects_cache[0] != key:
            value = distinct_projects(self._store.current_tasks())
            self._projects_cache = (key, value)
        return self._projects_cache[1]
