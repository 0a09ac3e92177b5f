"""
Configuration loading and validation.

Loads board configuration from a YAML file. The API token for the remote
task store is resolved from the environment and never stored in the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class RemoteStoreConfig(BaseModel):
    url: str = "http://localhost:5000"
    api_prefix: str = "/api/tasks"
    verify_tls: bool = True
    request_timeout_seconds: int = 30
    token_env: str = "KANBAN_API_TOKEN"

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)


class SyncConfig(BaseModel):
    # re-densify the column a task leaves on a cross-column move
    compact_source_column: bool = True


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "text"


class BoardConfig(BaseModel):
    remote: RemoteStoreConfig = Field(default_factory=RemoteStoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> BoardConfig:
    """Load and validate board configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return BoardConfig.model_validate(raw)
