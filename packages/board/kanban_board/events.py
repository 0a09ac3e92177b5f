"""
Drag lifecycle events consumed from the pointer-gesture subsystem.

The gesture library is pluggable: anything that can report an active id
and a hovered target id can drive a ``DragEventSink``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class DragEvent:
    """A parsed drag event: the dragged task and what it hovers (if anything)."""
    active_id: str
    over_id: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DragEvent":
        """Parse ``{active: {id}, over: {id} | null}``."""
        active = payload.get("active") or {}
        over = payload.get("over") or {}
        active_id = active.get("id")
        if active_id is None:
            raise ValueError("drag event without active.id")
        over_id = over.get("id")
        return cls(str(active_id), None if over_id is None else str(over_id))


class DragEventSink(Protocol):
    def on_drag_start(self, event: DragEvent) -> Any: ...

    def on_drag_over(self, event: DragEvent) -> Any: ...

    def on_drag_end(self, event: DragEvent) -> Any: ...


class GestureAdapter:
    """Routes raw gesture-library callbacks to a sink by event name."""

    _ROUTES = {
        "dragStart": "on_drag_start",
        "dragOver": "on_drag_over",
        "dragEnd": "on_drag_end",
    }

    def __init__(self, sink: DragEventSink):
        self._sink = sink

    def feed(self, name: str, payload: dict[str, Any]) -> Any:
        method = self._ROUTES.get(name)
        if method is None:
            raise ValueError(f"Unknown drag event: {name}")
        return getattr(self._sink, method)(DragEvent.from_payload(payload))
