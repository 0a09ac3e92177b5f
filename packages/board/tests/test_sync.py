"""
Integration tests: optimistic drag commits and task CRUD against the mock store.

Covers persistence payloads, merge of canonical responses, and the
reload-on-failure recovery path.
"""

from __future__ import annotations

import asyncio

import pytest

from kanban_board.errors import RemoteStoreError, RemoteUnavailableError, TaskValidationError
from kanban_board.ordering import CommitKind
from kanban_board.remote import RemoteTaskStore
from kanban_shared.schemas.common import TaskPriority
from kanban_shared.schemas.tasks import TaskCreate, TaskUpdate

from .factories import is_dense, layout


def drag(board, active, over):
    board.engine.drag_start(active)
    board.engine.drag_over(active, over)
    return board.engine.drag_end(active, over)


# ---------------------------------------------------------------------------
# Drag persistence
# ---------------------------------------------------------------------------


async def test_reorder_is_applied_before_network_and_persisted_as_batch(board, seeded_store):
    commit = drag(board, "A", "B")

    # optimistic: visible before any round-trip completes
    assert commit.kind == CommitKind.REORDER
    assert layout(board.cache)["L1"] == ["B", "A"]

    await board.sync.drain()
    assert seeded_store.state.calls("PATCH", "/api/tasks/reorder")
    assert [t["_id"] for t in seeded_store.state.column("L1")] == ["B", "A"]
    assert board.metrics.get("sync_ok_total") >= 1


async def test_cross_column_move_sends_status_patch(board, seeded_store):
    drag(board, "A", "L2")
    task = board.cache.get_task("A")
    assert (task.status, task.order) == ("L2", 1)

    await board.sync.drain()
    assert seeded_store.state.calls("PATCH", "/api/tasks/A/status")
    remote = seeded_store.state.tasks["A"]
    assert (remote["status"], remote["order"]) == ("L2", 1)
    # B was compacted to the top of Todo on both sides
    assert seeded_store.state.tasks["B"]["order"] == 0
    assert is_dense(board.cache)


async def test_failed_move_leaves_source_column_uncompacted(board, seeded_store):
    seeded_store.state.fail("status")
    seeded_store.state.delays["tasks.list"] = 0.1

    drag(board, "A", "L3")
    assert [(t.id, t.order) for t in board.cache.column("L1")] == [("B", 0)]

    await board.sync.drain()
    assert not seeded_store.state.calls("PATCH", "/api/tasks/reorder")
    assert [(t["_id"], t["order"]) for t in seeded_store.state.column("L1")] == [("A", 0), ("B", 1)]
    assert layout(board.cache)["L1"] == ["A", "B"]
    assert is_dense(board.cache)


async def test_source_compaction_follows_confirmed_move(board, seeded_store):
    seeded_store.state.requests.clear()
    drag(board, "A", "L3")
    await board.sync.drain()

    paths = [path for method, path in seeded_store.state.calls("PATCH")]
    assert paths == ["/api/tasks/A/status", "/api/tasks/reorder"]
    assert board.metrics.get("source_compactions_total") == 1


async def test_noop_drag_makes_no_network_call(board, seeded_store):
    before = board.cache.placements()
    seeded_store.state.requests.clear()

    assert drag(board, "A", "A").kind == CommitKind.NOOP
    await board.sync.drain()

    assert board.cache.placements() == before
    assert seeded_store.state.requests == []


async def test_aborted_drag_makes_no_network_call(board, seeded_store):
    before = board.cache.placements()
    seeded_store.state.requests.clear()

    board.engine.drag_start("A")
    board.engine.drag_over("A", "L3")
    assert board.engine.drag_end("A", None).kind == CommitKind.ABORTED
    await board.sync.drain()

    assert board.cache.placements() == before
    assert seeded_store.state.requests == []


async def test_failed_reorder_reloads_server_truth(board, seeded_store):
    seeded_store.state.fail("reorder")

    drag(board, "A", "B")
    assert layout(board.cache)["L1"] == ["B", "A"]

    await board.sync.drain()
    assert layout(board.cache)["L1"] == ["A", "B"]
    assert board.metrics.get("sync_failed_total") == 1
    assert board.metrics.get("reloads_total") == 2  # startup + recovery


async def test_failed_move_reloads_server_truth(board, seeded_store):
    seeded_store.state.fail("status", status=404)

    drag(board, "C", "L1")
    assert board.cache.column_of("C") == "L1"

    await board.sync.drain()
    assert board.cache.column_of("C") == "L2"


async def test_rapid_drags_all_persist(board, seeded_store):
    seeded_store.state.delays["status"] = 0.2

    drag(board, "A", "L3")
    drag(board, "B", "L3")
    drag(board, "C", "A")
    assert layout(board.cache)["L3"] == ["A", "B", "C"]

    await board.sync.drain()
    assert layout(board.cache)["L3"] == ["A", "B", "C"]
    assert [t["_id"] for t in seeded_store.state.column("L3")] == ["A", "B", "C"]


async def test_stale_confirmation_does_not_overwrite_newer_drag(board, seeded_store):
    seeded_store.state.delays["status"] = 0.3

    drag(board, "A", "L3")
    await asyncio.sleep(0.05)
    # a second move of the same task is issued before the first confirmation lands
    seeded_store.state.delays["status"] = 0
    drag(board, "A", "L2")

    await board.sync.drain()
    assert board.cache.column_of("A") == "L2"


async def test_concurrent_failures_share_one_reload(board, seeded_store):
    seeded_store.state.fail("reorder", times=2)
    seeded_store.state.delays["tasks.list"] = 0.1

    drag(board, "A", "B")
    drag(board, "B", "A")
    await board.sync.drain()

    assert board.metrics.get("sync_failed_total") == 2
    assert layout(board.cache)["L1"] == ["A", "B"]
    # one startup fetch plus a single shared recovery fetch
    assert len(seeded_store.state.calls("GET", "/api/tasks/lists")) == 2


# ---------------------------------------------------------------------------
# Task CRUD and comments
# ---------------------------------------------------------------------------


async def test_create_task_replaces_provisional(board, seeded_store):
    created = await board.sync.create_task(TaskCreate(title="New card", status="L3"))

    assert created is not None
    assert created.id in seeded_store.state.tasks
    assert [t.id for t in board.cache.column("L3")] == [created.id]
    assert not any(t.id.startswith("tmp-") for t in board.cache.tasks)


async def test_create_task_defaults_to_first_list(board):
    created = await board.sync.create_task(TaskCreate(title="Inbox item"))
    assert created.status == "L1"
    assert created.order == 2


async def test_create_task_rejects_unknown_list(board, seeded_store):
    seeded_store.state.requests.clear()
    with pytest.raises(TaskValidationError):
        await board.sync.create_task(TaskCreate(title="Lost", status="nowhere"))
    assert seeded_store.state.requests == []


async def test_failed_create_drops_provisional(board, seeded_store):
    seeded_store.state.fail("tasks.create")
    assert await board.sync.create_task(TaskCreate(title="Doomed")) is None
    assert sorted(t.id for t in board.cache.tasks) == ["A", "B", "C"]


async def test_update_task_merges_server_copy(board, seeded_store):
    updated = await board.sync.update_task("A", TaskUpdate(title="Rewrite spec", priority=TaskPriority.HIGH))
    assert updated.title == "Rewrite spec"
    assert board.cache.get_task("A").priority == TaskPriority.HIGH
    assert seeded_store.state.tasks["A"]["priority"] == "High"


async def test_failed_update_rolls_back(board, seeded_store):
    seeded_store.state.fail("tasks.update")
    assert await board.sync.update_task("A", TaskUpdate(title="Nope")) is None
    assert board.cache.get_task("A").title == "Write spec"


async def test_delete_task(board, seeded_store):
    assert await board.sync.delete_task("C")
    assert board.cache.get_task("C") is None
    assert "C" not in seeded_store.state.tasks


async def test_failed_delete_restores_task(board, seeded_store):
    seeded_store.state.fail("tasks.delete")
    assert not await board.sync.delete_task("C")
    assert board.cache.get_task("C") is not None


async def test_stale_ids_are_noops(board, seeded_store):
    seeded_store.state.requests.clear()
    assert await board.sync.update_task("ghost", TaskUpdate(title="x")) is None
    assert not await board.sync.delete_task("ghost")
    assert await board.sync.add_comment("ghost", "hello", "me") is None
    assert seeded_store.state.requests == []


async def test_add_comment(board, seeded_store):
    updated = await board.sync.add_comment("B", "Looks good", "Ada")
    assert [c.text for c in updated.comments] == ["Looks good"]
    assert board.cache.get_task("B").comments[0].author == "Ada"
    assert seeded_store.state.tasks["B"]["comments"][0]["author"] == "Ada"


async def test_blank_comment_rejected_locally(board):
    with pytest.raises(TaskValidationError):
        await board.sync.add_comment("B", "   ", "Ada")


# ---------------------------------------------------------------------------
# Remote client
# ---------------------------------------------------------------------------


async def test_enveloped_responses_are_normalized(seeded_store):
    seeded_store.state.envelope = True
    async with RemoteTaskStore(seeded_store.url) as remote:
        tasks = await remote.list_tasks()
        assert sorted(t.id for t in tasks) == ["A", "B", "C"]
        moved = await remote.update_task_status("A", "L3", 0)
        assert moved.status == "L3"


async def test_http_errors_carry_status_and_message(seeded_store):
    async with RemoteTaskStore(seeded_store.url) as remote:
        with pytest.raises(RemoteStoreError) as exc_info:
            await remote.get_task("ghost")
    assert exc_info.value.status_code == 404
    assert exc_info.value.not_found
    assert "Task not found" in exc_info.value.message


async def test_unreachable_store():
    async with RemoteTaskStore("http://127.0.0.1:9", request_timeout=2) as remote:
        with pytest.raises(RemoteUnavailableError):
            await remote.list_lists()
        assert not await remote.check_health()
