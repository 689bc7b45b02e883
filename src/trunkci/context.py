# context.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .artifacts import ArtifactStore
from .model import Event, Job
from .ui.console import Console


@dataclass(frozen=True)
class ExecutionContext:
    """
    Everything a step may read while it runs.

    `env` is the process + pipeline + job environment. Secrets are never
    part of it; they are bound per step by the runner.
    """
    run_id: str
    job: Job
    event: Event
    workspace: Path
    env: Mapping[str, str]
    artifacts: ArtifactStore
    console: Console

    @classmethod
    def create(cls, *, env: Mapping[str, str], **kwargs) -> "ExecutionContext":
        return cls(env=MappingProxyType(dict(env)), **kwargs)
