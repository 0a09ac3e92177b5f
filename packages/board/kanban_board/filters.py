"""
Filter view: derives the visible subset of the cached tasks.

Filters are independent and conjunctive. Derivation never mutates the cache.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from kanban_shared.schemas.common import DueBucket, TaskPriority
from kanban_shared.schemas.tasks import Task

from .store import BoardCache, sort_key


class BoardFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    search: str = ""
    assignee: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due: DueBucket = DueBucket.NONE

    @property
    def active(self) -> bool:
        return bool(self.search or self.assignee or self.priority or self.due != DueBucket.NONE)

    def cleared(self) -> "BoardFilters":
        return BoardFilters()


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _align(due: datetime, ref: datetime) -> datetime:
    """Bring ``due`` into the same naive/aware frame as ``ref``."""
    if ref.tzinfo is None and due.tzinfo is not None:
        return due.astimezone().replace(tzinfo=None)
    if ref.tzinfo is not None and due.tzinfo is None:
        return due.replace(tzinfo=ref.tzinfo)
    return due


def matches_due(task: Task, bucket: DueBucket, now: datetime) -> bool:
    if bucket == DueBucket.NONE:
        return True
    if task.due_date is None:
        return False

    today = start_of_day(now)
    due = _align(task.due_date, today)

    if bucket == DueBucket.OVERDUE:
        return due < today
    if bucket == DueBucket.TODAY:
        return today <= due < today + timedelta(days=1)
    if bucket == DueBucket.WEEK:
        return today <= due < today + timedelta(days=7)
    return True


def matches(task: Task, filters: BoardFilters, now: datetime) -> bool:
    if filters.search:
        q = filters.search.lower()
        if q not in task.title.lower() and q not in (task.description or "").lower():
            return False
    if filters.assignee and filters.assignee not in task.assigned_to:
        return False
    if filters.priority and (task.priority or TaskPriority.MEDIUM) != filters.priority:
        return False
    return matches_due(task, filters.due, now)


def visible_tasks(
    cache: BoardCache,
    filters: BoardFilters,
    now: datetime | None = None,
) -> list[Task]:
    """Tasks passing every filter, in cache order."""
    if now is None:
        now = datetime.now().astimezone()
    return [t for t in cache.tasks if matches(t, filters, now)]


def column_tasks(tasks: Iterable[Task], column_id: str) -> list[Task]:
    """Tasks of one column out of an already-derived subset, by position."""
    return sorted((t for t in tasks if t.status == column_id), key=sort_key)


class FilterView:
    """
    Memoized ``visible_tasks`` over a cache.

    The result is recomputed whenever the cache revision or the filters
    change; otherwise the previous derivation is returned.
    """

    def __init__(self, cache: BoardCache, filters: BoardFilters | None = None):
        self._cache = cache
        self._filters = filters or BoardFilters()
        self._key: tuple | None = None
        self._result: list[Task] = []

    @property
    def filters(self) -> BoardFilters:
        return self._filters

    @filters.setter
    def filters(self, value: BoardFilters) -> None:
        self._filters = value

    def clear(self) -> None:
        self._filters = self._filters.cleared()

    def tasks(self, now: datetime | None = None) -> list[Task]:
        if now is None:
            now = datetime.now().astimezone()
        # the day boundary is part of the key so buckets roll over at midnight
        key = (self._cache.revision, self._filters, start_of_day(now))
        if key != self._key:
            self._result = visible_tasks(self._cache, self._filters, now)
            self._key = key
        return list(self._result)

    def column(self, column_id: str, now: datetime | None = None) -> list[Task]:
        return column_tasks(self.tasks(now), column_id)
