"""
Shared fixtures for board engine tests.
"""

import asyncio
import random
from dataclasses import dataclass

import pytest
import uvicorn

from kanban_board.board import KanbanBoard
from kanban_board.config import BoardConfig

from .mock_servers import StoreState, create_store_app


class _UvicornServer:
    def __init__(self, app, host: str, port: int):
        self.config = uvicorn.Config(app, host=host, port=port, log_level="error")
        self.server = uvicorn.Server(self.config)
        self._task: asyncio.Task | None = None

    async def start(self):
        self._task = asyncio.create_task(self.server.serve())
        for _ in range(100):
            if self.server.started:
                return
            await asyncio.sleep(0.05)
        raise RuntimeError("Server did not start")

    async def stop(self):
        self.server.should_exit = True
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._task.cancel()


def _pick_port():
    return random.randint(19000, 19999)


@dataclass
class MockStore:
    url: str
    state: StoreState


@pytest.fixture
async def task_store():
    port = _pick_port()
    state = StoreState()
    srv = _UvicornServer(create_store_app(state), "127.0.0.1", port)
    await srv.start()
    yield MockStore(f"http://127.0.0.1:{port}", state)
    await srv.stop()


@pytest.fixture
def seeded_store(task_store):
    """Todo(L1) with A, B; Doing(L2) with C; Done(L3) empty."""
    s = task_store.state
    s.add_list("Todo", "L1")
    s.add_list("Doing", "L2")
    s.add_list("Done", "L3")
    s.add_task("Write spec", "L1", 0, task_id="A")
    s.add_task("Review spec", "L1", 1, task_id="B")
    s.add_task("Ship it", "L2", 0, task_id="C")
    return task_store


@pytest.fixture
async def board(seeded_store):
    config = BoardConfig.model_validate({
        "remote": {"url": seeded_store.url, "request_timeout_seconds": 5},
        "logging": {"level": "debug", "format": "text"},
    })
    b = KanbanBoard(config)
    assert await b.start()
    yield b
    await b.stop()

