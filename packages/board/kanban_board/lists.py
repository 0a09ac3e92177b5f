"""
Board list (column) lifecycle: create, rename, reorder and delete.

The board always keeps at least one list. Deleting a list moves its tasks
to the first remaining list; the remote store performs that reassignment,
so a successful delete is followed by a refetch of the tasks.
"""

from __future__ import annotations

import structlog

from kanban_shared.schemas.lists import (
    BoardList,
    BoardListCreate,
    BoardListUpdate,
    ListOrderItem,
)

from .errors import LastListError, ListValidationError
from .ordering import array_move
from .remote import RemoteTaskStore
from .store import BoardCache, Placement
from .sync import SyncCoordinator

log = structlog.get_logger()


class ListManager:
    def __init__(self, cache: BoardCache, remote: RemoteTaskStore, sync: SyncCoordinator):
        self._cache = cache
        self._remote = remote
        self._sync = sync

    async def create_list(
        self,
        name: str,
        color: str | None = None,
        emoji: str | None = None,
    ) -> BoardList | None:
        """Create a column. Blank names are rejected without a network call."""
        if not name or not name.strip():
            raise ListValidationError("List name is required")
        extra = {k: v for k, v in (("color", color), ("emoji", emoji)) if v}
        list_in = BoardListCreate(name=name, **extra)

        ok, created = await self._sync.execute(
            "list.create",
            self._remote.create_list(list_in),
            self._cache.append_list,
        )
        if ok:
            log.info("lists.created", list_id=created.id, name=created.name)
        return created

    async def update_list(self, list_id: str, changes: BoardListUpdate) -> BoardList | None:
        board_list = self._cache.get_list(list_id)
        if board_list is None:
            log.info("lists.stale_list", op="update", list_id=list_id)
            return None
        if changes.name is not None and not changes.name.strip():
            raise ListValidationError("List name is required")

        self._cache.upsert_list(board_list.model_copy(update=changes.model_dump(exclude_unset=True)))
        _, updated = await self._sync.execute(
            "list.update",
            self._remote.update_list(list_id, changes),
            self._cache.upsert_list,
        )
        return updated

    async def move_list(self, list_id: str, new_index: int) -> bool:
        """Reposition a column among the others."""
        ids = self._cache.list_ids()
        if list_id not in ids:
            log.info("lists.stale_list", op="move", list_id=list_id)
            return False
        new_index = max(0, min(new_index, len(ids) - 1))
        old_index = ids.index(list_id)
        if old_index == new_index:
            return False

        by_id = {l.id: l for l in self._cache.lists}
        reordered = [by_id[i] for i in array_move(ids, old_index, new_index)]
        self._cache.replace_lists(
            [l.model_copy(update={"order": i}) for i, l in enumerate(reordered)]
        )
        items = [ListOrderItem(id=l.id, order=i) for i, l in enumerate(reordered)]
        ok, _ = await self._sync.execute("list.reorder", self._remote.reorder_lists(items))
        return ok

    async def delete_list(self, list_id: str) -> bool:
        """
        Delete a column, reassigning its tasks to the first remaining column.

        Raises ``LastListError`` (before any network call) when it is the only
        list. Returns False for unknown ids or when the remote delete failed.
        """
        lists = self._cache.lists
        if len(lists) <= 1:
            raise LastListError()
        if not self._cache.has_list(list_id):
            log.info("lists.stale_list", op="delete", list_id=list_id)
            return False

        fallback = next(l.id for l in lists if l.id != list_id)
        self._reassign_orphans(list_id, fallback)
        self._cache.remove_list(list_id)

        ok, _ = await self._sync.execute("list.delete", self._remote.delete_list(list_id))
        if not ok:
            return False

        log.info("lists.deleted", list_id=list_id, moved_to=fallback)
        await self._sync.refresh_tasks()
        return True

    def _reassign_orphans(self, list_id: str, fallback: str) -> None:
        # appended after the fallback column's tasks until the refetch lands
        base = len(self._cache.column(fallback))
        orphans = self._cache.column(list_id)
        self._cache.apply_placements(
            Placement(t.id, fallback, base + i) for i, t in enumerate(orphans)
        )
