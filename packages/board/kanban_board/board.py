"""
Main board orchestrator.

Wires the cache, remote store client, sync coordinator, ordering engine and
list manager together and owns their lifecycle: startup load, shutdown drain.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

import httpx
import structlog

from kanban_shared.schemas.lists import BoardList
from kanban_shared.schemas.tasks import Task

from .config import BoardConfig
from .filters import BoardFilters, FilterView
from .lists import ListManager
from .metrics import MetricsCollector
from .ordering import OrderingEngine
from .remote import RemoteTaskStore
from .store import BoardCache
from .sync import SyncCoordinator

log = structlog.get_logger()

SHUTDOWN_TIMEOUT = 15.0


class KanbanBoard:
    """
    A kanban board mirrored from the remote task store.

    ``engine`` receives drag events, ``lists`` manages columns, ``sync``
    exposes task CRUD and comments. ``columns()`` yields what to render.
    """

    def __init__(
        self,
        config: BoardConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self.metrics = MetricsCollector()
        self.cache = BoardCache()
        self.remote = RemoteTaskStore(
            base_url=config.remote.url,
            api_prefix=config.remote.api_prefix,
            verify_tls=config.remote.verify_tls,
            request_timeout=config.remote.request_timeout_seconds,
            token=config.remote.token,
            transport=transport,
        )
        self.sync = SyncCoordinator(self.cache, self.remote, self.metrics)
        self.engine = OrderingEngine(
            self.cache,
            self.sync,
            self.metrics,
            compact_source_column=config.sync.compact_source_column,
        )
        self.lists = ListManager(self.cache, self.remote, self.sync)
        self.view = FilterView(self.cache)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> bool:
        """Open the remote client and load the board. Returns False if the load failed."""
        log.info("board.starting", url=self._config.remote.url)
        await self.remote.open()
        self._running = True
        loaded = await self.sync.reload()
        if loaded:
            log.info("board.started", lists=len(self.cache.lists), tasks=len(self.cache.tasks))
        else:
            log.warning("board.initial_load_failed")
        return loaded

    async def stop(self) -> None:
        """Graceful shutdown: wait for in-flight persistence, then close the client."""
        if not self._running:
            return
        self._running = False
        log.info("board.stopping", pending=self.sync.pending)
        try:
            await asyncio.wait_for(self.sync.drain(), timeout=SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            log.warning("board.drain_timeout", pending=self.sync.pending)
        await self.remote.close()
        log.info("board.stopped")

    async def __aenter__(self) -> "KanbanBoard":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def set_filters(self, filters: BoardFilters) -> None:
        self.view.filters = filters

    def columns(self, now: datetime | None = None) -> list[tuple[BoardList, list[Task]]]:
        """Each list with its visible tasks, in position order."""
        return [(l, self.view.column(l.id, now)) for l in self.cache.lists]

