"""
In-process counters and gauges for board synchronization.

Tracks how often drags commit, how often optimistic updates are confirmed or
rejected, and how often the board is reloaded from the store. Names are
fixed by ``BoardMetric`` so a typo fails loudly instead of opening a new
series.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

PREFIX = "board_"


class BoardMetric(str, Enum):
    # counters
    DRAG_COMMITS = "drag_commits_total"
    DRAG_ABORTED = "drag_aborted_total"
    SOURCE_COMPACTIONS = "source_compactions_total"
    SYNC_OK = "sync_ok_total"
    SYNC_FAILED = "sync_failed_total"
    RELOADS = "reloads_total"
    # gauges
    TASKS_CACHED = "tasks_cached"

    @property
    def is_gauge(self) -> bool:
        return self in _GAUGES

    @property
    def key(self) -> str:
        return f"{PREFIX}{self.value}"


_GAUGES = frozenset({BoardMetric.TASKS_CACHED})


class MetricsCollector:
    """Counter/gauge store keyed by ``BoardMetric``."""

    def __init__(self) -> None:
        self._counters: dict[BoardMetric, int] = {
            m: 0 for m in BoardMetric if not m.is_gauge
        }
        self._gauges: dict[BoardMetric, float] = {}
        self._start_time = time.time()

    @staticmethod
    def _metric(name: BoardMetric | str, gauge: bool) -> BoardMetric:
        metric = BoardMetric(name)
        if metric.is_gauge != gauge:
            kind = "gauge" if metric.is_gauge else "counter"
            raise ValueError(f"{metric.value} is a {kind}")
        return metric

    def inc(self, name: BoardMetric | str, value: int = 1) -> None:
        self._counters[self._metric(name, gauge=False)] += value

    def set_gauge(self, name: BoardMetric | str, value: float) -> None:
        self._gauges[self._metric(name, gauge=True)] = value

    def get(self, name: BoardMetric | str) -> int | float:
        metric = BoardMetric(name)
        if metric.is_gauge:
            return self._gauges.get(metric, 0)
        return self._counters[metric]

    def to_dict(self) -> dict[str, Any]:
        """Export every counter (zeros included) and the gauges set so far."""
        return {
            "counters": {m.key: v for m, v in self._counters.items()},
            "gauges": {m.key: v for m, v in self._gauges.items()},
            "uptime_seconds": time.time() - self._start_time,
        }
