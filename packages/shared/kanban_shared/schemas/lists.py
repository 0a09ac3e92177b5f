"""Board list (column) schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator

from .common import WireModel

DEFAULT_LIST_COLOR = "#6b7280"
DEFAULT_LIST_EMOJI = "📋"


class BoardList(WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    color: str = DEFAULT_LIST_COLOR
    emoji: str = DEFAULT_LIST_EMOJI
    order: Optional[int] = None


class BoardListCreate(WireModel):
    name: str
    color: Optional[str] = None
    emoji: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("List name is required")
        return v.strip()


class BoardListUpdate(WireModel):
    name: Optional[str] = None
    color: Optional[str] = None
    emoji: Optional[str] = None


class ListOrderItem(WireModel):
    id: str
    order: int = Field(ge=0)


class ListReorderRequest(WireModel):
    """Request body for PATCH /tasks/lists/reorder."""
    lists: List[ListOrderItem]
