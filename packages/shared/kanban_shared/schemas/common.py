from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class DueBucket(str, Enum):
    NONE = "none"
    OVERDUE = "overdue"
    TODAY = "today"
    WEEK = "week"


class WireModel(BaseModel):
    """Base for models that travel over the wire with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def unwrap_envelope(payload: Any) -> Any:
    """Return the body of a ``{data: ...}`` envelope, or the payload itself."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def ref_id(value: Any) -> Any:
    """Collapse a populated reference (``{_id, name, ...}``) to its id."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value
