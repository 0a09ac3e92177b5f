"""
Client-side mirror of the remote task and board-list collections.

The cache is the single mutable structure the engine owns. Readers (the
filter view, rendering) only ever receive task/list objects; writes go
through the ordering engine, the list manager or the sync coordinator.
Every write bumps ``revision`` so derived views know when to recompute.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from kanban_shared.schemas.lists import BoardList
from kanban_shared.schemas.tasks import Task


@dataclass(frozen=True)
class Placement:
    """Where a task lives: its column and its position inside that column."""
    task_id: str
    status: str
    order: int


def sort_key(task: Task) -> tuple[int, str]:
    # duplicate orders from legacy data fall back to id
    return (task.order, task.id)


class BoardCache:
    """In-memory tasks (keyed by id, store order preserved) and lists."""

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        lists: Iterable[BoardList] = (),
    ) -> None:
        self._tasks: dict[str, Task] = {t.id: t for t in tasks}
        self._lists: list[BoardList] = list(lists)
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    def _touch(self) -> None:
        self._revision += 1

    # --- Reads ---

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def lists(self) -> list[BoardList]:
        return list(self._lists)

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def get_list(self, list_id: str) -> BoardList | None:
        for board_list in self._lists:
            if board_list.id == list_id:
                return board_list
        return None

    def has_list(self, list_id: str) -> bool:
        return self.get_list(list_id) is not None

    def list_ids(self) -> list[str]:
        return [l.id for l in self._lists]

    def column(self, status: str) -> list[Task]:
        """Tasks in a column, sorted by position."""
        return sorted((t for t in self._tasks.values() if t.status == status), key=sort_key)

    def column_of(self, task_id: str) -> str | None:
        task = self._tasks.get(task_id)
        return task.status if task else None

    def placements(self) -> dict[str, tuple[str, int]]:
        """Snapshot of ``task_id -> (status, order)`` for every cached task."""
        return {t.id: (t.status, t.order) for t in self._tasks.values()}

    # --- Wholesale replacement (reconciliation) ---

    def replace_all(self, tasks: Sequence[Task], lists: Sequence[BoardList]) -> None:
        self._tasks = {t.id: t for t in tasks}
        self._lists = list(lists)
        self._touch()

    def replace_tasks(self, tasks: Sequence[Task]) -> None:
        self._tasks = {t.id: t for t in tasks}
        self._touch()

    def replace_lists(self, lists: Sequence[BoardList]) -> None:
        self._lists = list(lists)
        self._touch()

    # --- Task writes ---

    def apply_placements(self, placements: Iterable[Placement]) -> int:
        """Apply status/order assignments. Unknown task ids are skipped."""
        applied = 0
        for p in placements:
            task = self._tasks.get(p.task_id)
            if task is None:
                continue
            if task.status != p.status or task.order != p.order:
                self._tasks[p.task_id] = task.model_copy(
                    update={"status": p.status, "order": p.order}
                )
            applied += 1
        if applied:
            self._touch()
        return applied

    def set_status(self, task_id: str, status: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None or task.status == status:
            return False
        self._tasks[task_id] = task.model_copy(update={"status": status})
        self._touch()
        return True

    def upsert_task(self, task: Task) -> None:
        self._tasks[task.id] = task
        self._touch()

    def replace_task(self, old_id: str, task: Task) -> None:
        """Swap a task for another one (possibly under a new id) in place."""
        rebuilt: dict[str, Task] = {}
        for tid, existing in self._tasks.items():
            if tid == old_id:
                rebuilt[task.id] = task
            elif tid != task.id:
                rebuilt[tid] = existing
        if old_id not in self._tasks:
            rebuilt[task.id] = task
        self._tasks = rebuilt
        self._touch()

    def remove_task(self, task_id: str) -> Task | None:
        task = self._tasks.pop(task_id, None)
        if task is not None:
            self._touch()
        return task

    # --- List writes ---

    def append_list(self, board_list: BoardList) -> None:
        self._lists.append(board_list)
        self._touch()

    def upsert_list(self, board_list: BoardList) -> None:
        for i, existing in enumerate(self._lists):
            if existing.id == board_list.id:
                self._lists[i] = board_list
                break
        else:
            self._lists.append(board_list)
        self._touch()

    def remove_list(self, list_id: str) -> BoardList | None:
        for i, existing in enumerate(self._lists):
            if existing.id == list_id:
                del self._lists[i]
                self._touch()
                return existing
        return None
