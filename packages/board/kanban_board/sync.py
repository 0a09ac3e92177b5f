"""
Sync coordinator: persists optimistic cache changes to the remote store.

Every mutation follows the same shape:
- apply the change to the cache right away
- call the remote store
- on success, merge the canonical response back by id
- on failure, log and reload the whole board so the cache converges on
  server truth

Drag commits are persisted fire-and-forget on background tasks; the
confirmations may come back in any order. A response is only merged if no
newer local write (or reload) has touched the task since the call was issued.
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from typing import Any, Awaitable, Callable, Sequence

import structlog

from kanban_shared.schemas.tasks import (
    Comment,
    ReorderItem,
    Task,
    TaskCreate,
    TaskUpdate,
)

from .errors import RemoteStoreError, TaskValidationError
from .metrics import BoardMetric, MetricsCollector
from .remote import RemoteTaskStore
from .store import BoardCache, Placement

log = structlog.get_logger()

PROVISIONAL_PREFIX = "tmp-"


class SyncCoordinator:
    def __init__(
        self,
        cache: BoardCache,
        remote: RemoteTaskStore,
        metrics: MetricsCollector | None = None,
    ):
        self._cache = cache
        self._remote = remote
        self._metrics = metrics
        self._pending: set[asyncio.Task] = set()
        self._reload_task: asyncio.Task | None = None
        self._seq = itertools.count(1)
        self._last_write: dict[str, int] = {}
        self._reloaded_at = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    # --- Background scheduling ---

    def schedule(self, coro: Awaitable[Any], op: str) -> asyncio.Task:
        """Run ``coro`` in the background and track it until it finishes."""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(t, op))
        return task

    def _on_done(self, task: asyncio.Task, op: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            log.info("sync.cancelled", op=op)
            return
        exc = task.exception()
        if exc is not None:
            log.error("sync.crashed", op=op, error=repr(exc))

    async def drain(self) -> None:
        """Wait until every scheduled persistence call (and its recovery) is done."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Write tracking ---

    def _stamp(self, task_ids: Sequence[str]) -> int:
        seq = next(self._seq)
        for tid in task_ids:
            self._last_write[tid] = seq
        return seq

    def _is_current(self, task_id: str, seq: int) -> bool:
        return self._last_write.get(task_id) == seq and self._reloaded_at < seq

    def _merge(self, task: Task, seq: int, *, as_id: str | None = None) -> None:
        key = as_id or task.id
        if not self._is_current(key, seq):
            log.debug("sync.merge_skipped", task_id=task.id)
            return
        if as_id and as_id != task.id:
            self._cache.replace_task(as_id, task)
        else:
            self._cache.upsert_task(task)

    # --- Core wrapper ---

    async def execute(
        self,
        op: str,
        call: Awaitable[Any],
        on_success: Callable[[Any], None] | None = None,
    ) -> tuple[bool, Any]:
        """
        Await a remote call; reload the board if it fails.

        Returns ``(ok, result)``. Failures are logged and answered with a full
        reload, never re-raised.
        """
        try:
            result = await call
        except RemoteStoreError as exc:
            log.error("sync.failed", op=op, status=exc.status_code, error=exc.message)
            self._count(BoardMetric.SYNC_FAILED)
            await self.reload()
            return False, None

        self._count(BoardMetric.SYNC_OK)
        if on_success is not None:
            on_success(result)
        return True, result

    # --- Reconciliation ---

    async def reload(self) -> bool:
        """Replace the cache with server truth. Concurrent calls share one fetch."""
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = asyncio.ensure_future(self._reload())
        return await asyncio.shield(self._reload_task)

    async def _reload(self) -> bool:
        # any response issued before this point is older than what we fetch
        self._reloaded_at = next(self._seq)
        try:
            tasks, lists = await asyncio.gather(
                self._remote.list_tasks(), self._remote.list_lists()
            )
        except RemoteStoreError as exc:
            log.error("sync.reload_failed", status=exc.status_code, error=exc.message)
            return False

        self._cache.replace_all(tasks, lists)
        self._count(BoardMetric.RELOADS)
        self._gauge_tasks()
        log.info("sync.reloaded", tasks=len(tasks), lists=len(lists))
        return True

    async def refresh_tasks(self) -> bool:
        """Refetch only the task collection."""
        self._reloaded_at = next(self._seq)
        try:
            tasks = await self._remote.list_tasks()
        except RemoteStoreError as exc:
            log.error("sync.refresh_failed", status=exc.status_code, error=exc.message)
            return False
        self._cache.replace_tasks(tasks)
        self._gauge_tasks()
        return True

    # --- Drag persistence ---

    def persist_reorder(self, placements: Sequence[Placement]) -> asyncio.Task:
        """Send a column's full ``{id, order, status}`` batch in the background."""
        self._stamp([p.task_id for p in placements])
        items = [ReorderItem(id=p.task_id, order=p.order, status=p.status) for p in placements]
        return self.schedule(
            self.execute("reorder", self._remote.reorder_tasks(items)), "reorder"
        )

    def persist_move(
        self,
        placement: Placement,
        source: Sequence[Placement] = (),
    ) -> asyncio.Task:
        """
        Send a single status/order patch in the background.

        ``source`` is the re-densified column the task left. Its batch is
        sent only after the patch succeeds, so a rejected move never leaves
        the store with the source compacted around a task that stayed put.
        """
        seq = self._stamp([placement.task_id, *(p.task_id for p in source)])
        return self.schedule(self._move(placement, list(source), seq), "move")

    async def _move(self, placement: Placement, source: list[Placement], seq: int) -> bool:
        call = self._remote.update_task_status(placement.task_id, placement.status, placement.order)
        ok, _ = await self.execute("move", call, lambda task: self._merge(task, seq))
        if not ok or not source:
            return ok
        # tasks moved again since (or reloaded) are covered by the newer write
        items = [
            ReorderItem(id=p.task_id, order=p.order, status=p.status)
            for p in source
            if self._is_current(p.task_id, seq)
        ]
        if not items:
            log.debug("sync.compaction_skipped", column=source[0].status)
            return ok
        ok, _ = await self.execute("reorder", self._remote.reorder_tasks(items))
        return ok

    # --- Task CRUD ---

    async def create_task(self, task_in: TaskCreate) -> Task | None:
        lists = self._cache.list_ids()
        status = task_in.status or (lists[0] if lists else None)
        if status is None or status not in lists:
            raise TaskValidationError(f"Unknown list: {status}")
        task_in = task_in.model_copy(update={"status": status})

        provisional = Task(
            id=f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}",
            title=task_in.title,
            description=task_in.description,
            status=status,
            order=len(self._cache.column(status)),
            priority=task_in.priority,
            assigned_to=list(task_in.assigned_to),
            client=task_in.client,
            due_date=task_in.due_date,
        )
        self._cache.upsert_task(provisional)
        seq = self._stamp([provisional.id])

        ok, created = await self.execute(
            "task.create",
            self._remote.create_task(task_in),
            lambda task: self._merge(task, seq, as_id=provisional.id),
        )
        if not ok:
            # the reload normally drops it already; a failed reload would not
            self._cache.remove_task(provisional.id)
            return None
        log.info("sync.task_created", task_id=created.id, status=created.status)
        return created

    async def update_task(self, task_id: str, changes: TaskUpdate) -> Task | None:
        task = self._cache.get_task(task_id)
        if task is None:
            log.info("sync.stale_task", op="task.update", task_id=task_id)
            return None

        self._cache.upsert_task(task.model_copy(update=changes.model_dump(exclude_unset=True)))
        seq = self._stamp([task_id])
        _, updated = await self.execute(
            "task.update",
            self._remote.update_task(task_id, changes),
            lambda t: self._merge(t, seq),
        )
        return updated

    async def delete_task(self, task_id: str) -> bool:
        if self._cache.remove_task(task_id) is None:
            log.info("sync.stale_task", op="task.delete", task_id=task_id)
            return False
        self._stamp([task_id])
        ok, _ = await self.execute("task.delete", self._remote.delete_task(task_id))
        return ok

    async def add_comment(self, task_id: str, text: str, author: str) -> Task | None:
        if not text.strip():
            raise TaskValidationError("Comment text is required")
        task = self._cache.get_task(task_id)
        if task is None:
            log.info("sync.stale_task", op="task.comment", task_id=task_id)
            return None

        comment = Comment(author=author, text=text)
        self._cache.upsert_task(task.model_copy(update={"comments": [*task.comments, comment]}))
        seq = self._stamp([task_id])
        _, updated = await self.execute(
            "task.comment",
            self._remote.add_comment(task_id, text, author),
            lambda t: self._merge(t, seq),
        )
        return updated

    # --- Helpers ---

    def _count(self, name: BoardMetric) -> None:
        if self._metrics:
            self._metrics.inc(name)

    def _gauge_tasks(self) -> None:
        if self._metrics:
            self._metrics.set_gauge(BoardMetric.TASKS_CACHED, len(self._cache.tasks))
