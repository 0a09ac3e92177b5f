"""
Ordering engine: turns drag lifecycle events into task placements.

States are ``Idle`` and ``Dragging(task)``. While dragging, hovering another
column speculatively moves the task there so column membership follows the
pointer. On drop the engine commits either an intra-column reorder (dense
0-based orders for the whole column) or a cross-column move (append to the
destination), applies it to the cache, and hands it to the sync coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Sequence, TypeVar

import structlog

from .events import DragEvent
from .metrics import BoardMetric, MetricsCollector
from .store import BoardCache, Placement

if TYPE_CHECKING:
    from .sync import SyncCoordinator

log = structlog.get_logger()

T = TypeVar("T")


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class CommitKind(str, Enum):
    REORDER = "reorder"
    MOVE = "move"
    NOOP = "noop"
    ABORTED = "aborted"


@dataclass
class DragCommit:
    kind: CommitKind
    task_id: str
    placements: list[Placement] = field(default_factory=list)
    # re-densified column the task left, when any order changed
    source_placements: list[Placement] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def array_move(items: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Return a copy with the element at ``old_index`` reinserted at ``new_index``."""
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def resolve_column(cache: BoardCache, over_id: str | None) -> str | None:
    """A drop target is either a column id or a task standing in a column."""
    if over_id is None:
        return None
    if cache.has_list(over_id):
        return over_id
    return cache.column_of(over_id)


def densify(cache: BoardCache, column_id: str) -> list[Placement]:
    return [Placement(t.id, column_id, i) for i, t in enumerate(cache.column(column_id))]


def plan_reorder(
    cache: BoardCache,
    column_id: str,
    active_id: str,
    over_id: str,
) -> list[Placement]:
    """
    Move ``active_id`` to the index held by ``over_id`` within one column.

    Returns placements for every task in the column, or an empty list when
    either task is not in the column or the drop lands on the current index.
    """
    ids = [t.id for t in cache.column(column_id)]
    if active_id not in ids or over_id not in ids:
        return []
    old_index, new_index = ids.index(active_id), ids.index(over_id)
    if old_index == new_index:
        return []
    return [Placement(tid, column_id, i) for i, tid in enumerate(array_move(ids, old_index, new_index))]


def plan_move_to_end(cache: BoardCache, column_id: str, active_id: str) -> list[Placement]:
    ids = [t.id for t in cache.column(column_id)]
    if active_id not in ids or ids[-1] == active_id:
        return []
    return [
        Placement(tid, column_id, i)
        for i, tid in enumerate(array_move(ids, ids.index(active_id), len(ids) - 1))
    ]


def plan_move(cache: BoardCache, active_id: str, target_column: str) -> Placement:
    """Append to ``target_column``: order is the column size before the move."""
    size = sum(1 for t in cache.column(target_column) if t.id != active_id)
    return Placement(active_id, target_column, size)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class OrderingEngine:
    """
    Drag state machine over a ``BoardCache``.

    Handlers run synchronously on the event loop: the cache reflects the
    outcome before they return. Persistence is scheduled on the sync
    coordinator and completes in the background.
    """

    def __init__(
        self,
        cache: BoardCache,
        sync: SyncCoordinator | None = None,
        metrics: MetricsCollector | None = None,
        compact_source_column: bool = True,
    ):
        self._cache = cache
        self._sync = sync
        self._metrics = metrics
        self._compact_source_column = compact_source_column
        self._active_id: str | None = None
        self._origin: str | None = None

    @property
    def phase(self) -> DragPhase:
        return DragPhase.DRAGGING if self._active_id else DragPhase.IDLE

    @property
    def active_task_id(self) -> str | None:
        return self._active_id

    # --- DragEventSink ---

    def on_drag_start(self, event: DragEvent) -> None:
        self.drag_start(event.active_id)

    def on_drag_over(self, event: DragEvent) -> None:
        self.drag_over(event.active_id, event.over_id)

    def on_drag_end(self, event: DragEvent) -> DragCommit:
        return self.drag_end(event.active_id, event.over_id)

    # --- Transitions ---

    def drag_start(self, task_id: str) -> bool:
        task = self._cache.get_task(task_id)
        if task is None:
            log.debug("ordering.drag_start_unknown", task_id=task_id)
            return False
        if self._active_id is not None:
            self._release()
            task = self._cache.get_task(task_id)
        self._active_id = task_id
        self._origin = task.status
        return True

    def drag_over(self, active_id: str, over_id: str | None) -> bool:
        if self._active_id != active_id:
            return False
        current = self._cache.column_of(active_id)
        target = resolve_column(self._cache, over_id)
        if current is None or target is None or current == target:
            return False
        return self._cache.set_status(active_id, target)

    def drag_end(self, active_id: str, over_id: str | None) -> DragCommit:
        origin = None
        if self._active_id == active_id:
            origin = self._origin
        elif self._active_id is not None:
            self._release()
        self._active_id = None
        self._origin = None

        task = self._cache.get_task(active_id)
        if task is None:
            log.info("ordering.stale_task", task_id=active_id)
            return DragCommit(CommitKind.NOOP, active_id)
        if origin is None:
            origin = task.status

        target = resolve_column(self._cache, over_id)
        if target is None:
            # dropped outside any valid target: undo the hover speculation
            self._cache.set_status(active_id, origin)
            self._count(BoardMetric.DRAG_ABORTED)
            return DragCommit(CommitKind.ABORTED, active_id)

        if target == origin:
            commit = self._commit_within(active_id, origin, over_id)
        else:
            commit = self._commit_move(active_id, origin, target)

        if commit.kind != CommitKind.NOOP:
            self._count(BoardMetric.DRAG_COMMITS)
            log.info(
                "ordering.committed",
                kind=commit.kind.value,
                task_id=active_id,
                column=commit.placements[0].status,
            )
        return commit

    def _release(self) -> None:
        """Abandon the current drag, undoing its hover move."""
        active_id, origin = self._active_id, self._origin
        self._active_id = None
        self._origin = None
        task = self._cache.get_task(active_id)
        if task is not None and origin is not None and task.status != origin:
            self._cache.set_status(active_id, origin)
        log.info("ordering.drag_abandoned", task_id=active_id)

    # --- Commits ---

    def _commit_within(self, active_id: str, column_id: str, over_id: str) -> DragCommit:
        self._cache.set_status(active_id, column_id)
        if self._cache.has_list(over_id):
            placements = plan_move_to_end(self._cache, column_id, active_id)
        else:
            placements = plan_reorder(self._cache, column_id, active_id, over_id)
        if not placements:
            return DragCommit(CommitKind.NOOP, active_id)

        self._cache.apply_placements(placements)
        if self._sync:
            self._sync.persist_reorder(placements)
        return DragCommit(CommitKind.REORDER, active_id, placements)

    def _commit_move(self, active_id: str, origin: str, target: str) -> DragCommit:
        placement = plan_move(self._cache, active_id, target)
        self._cache.apply_placements([placement])

        source: list[Placement] = []
        if self._compact_source_column:
            dense = densify(self._cache, origin)
            if any(self._cache.get_task(p.task_id).order != p.order for p in dense):
                source = dense
                self._cache.apply_placements(source)
                self._count(BoardMetric.SOURCE_COMPACTIONS)

        if self._sync:
            # compaction is only sent once the move itself is confirmed
            self._sync.persist_move(placement, source)
        return DragCommit(CommitKind.MOVE, active_id, [placement], source)

    def _count(self, name: BoardMetric) -> None:
        if self._metrics:
            self._metrics.inc(name)
