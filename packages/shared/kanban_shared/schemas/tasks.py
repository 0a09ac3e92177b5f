"""Task-related Pydantic schemas for the board engine and the remote task store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator

from .common import TaskPriority, WireModel, ref_id


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class Comment(WireModel):
    """A single entry in a task's append-only comment thread."""
    author: str
    text: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("timestamp", "date"),
    )


class CommentCreate(WireModel):
    """Request body for POST /tasks/{taskId}/comments."""
    text: str = Field(min_length=1)
    author: str


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class Task(WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str
    description: str = ""
    status: str
    order: int = 0
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: List[str] = Field(default_factory=list)
    client: Optional[str] = None
    due_date: Optional[datetime] = None
    comments: List[Comment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v):
        return "" if v is None else v

    @field_validator("order", mode="before")
    @classmethod
    def _default_order(cls, v):
        # legacy rows carry no order at all
        return 0 if v is None else v

    @field_validator("order")
    @classmethod
    def _non_negative_order(cls, v):
        return max(v, 0)

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, v):
        return TaskPriority.MEDIUM if v in (None, "") else v

    @field_validator("assigned_to", mode="before")
    @classmethod
    def _member_ids(cls, v):
        if v is None:
            return []
        return [ref_id(m) for m in v]

    @field_validator("client", mode="before")
    @classmethod
    def _client_id(cls, v):
        return ref_id(v)


class TaskCreate(WireModel):
    title: str = Field(min_length=1)
    description: str = ""
    status: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: List[str] = Field(default_factory=list)
    client: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Task title is required")
        return v.strip()


class TaskUpdate(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[List[str]] = None
    client: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Task title is required")
        return v


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

class StatusPatch(WireModel):
    """Request body for PATCH /tasks/{taskId}/status."""
    status: str
    order: int = Field(ge=0)


class ReorderItem(WireModel):
    id: str
    order: int = Field(ge=0)
    status: str


class ReorderRequest(WireModel):
    """Request body for PATCH /tasks/reorder."""
    tasks: List[ReorderItem]
