# model.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


EVENT_KINDS = ("push", "pull_request")


@dataclass(frozen=True)
class Event:
    """A version-control event that may trigger a pipeline."""
    kind: str
    branch: str
    sha: str | None = None
    repository: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {self.kind!r}, expected one of {EVENT_KINDS}")


@dataclass(frozen=True)
class SecretRef:
    """Placeholder for a secret value inside a step's env mapping."""
    name: str

    def __str__(self) -> str:
        return "${{ secrets.%s }}" % self.name


@dataclass(frozen=True)
class Step:
    """
    A single unit of work inside a job.

    Either an inline shell command (`run`) or an action reference (`uses`)
    with its parameters (`with_`).
    """
    name: str
    run: str | None = None
    uses: str | None = None
    with_: Mapping[str, Any] = field(default_factory=dict)
    env: Mapping[str, Any] = field(default_factory=dict)
    cwd: str | None = None

    def __post_init__(self) -> None:
        if (self.run is None) == (self.uses is None):
            raise ValueError(f"step {self.name!r} needs exactly one of run= or uses=")

    @property
    def secret_names(self) -> list[str]:
        return [v.name for v in self.env.values() if isinstance(v, SecretRef)]

    @property
    def plain_env(self) -> dict[str, str]:
        return {k: str(v) for k, v in self.env.items() if not isinstance(v, SecretRef)}


@dataclass
class Job:
    """A CI job: an execution target plus an ordered list of steps."""
    name: str
    steps: list[Step]
    runs_on: str = "ubuntu-latest"
    needs: list[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Pipeline:
    name: str
    triggers: Mapping[str, Tuple[str, ...]]
    jobs: Tuple[Job, ...]
    env: Mapping[str, str] = field(default_factory=dict)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    step: str
    status: StepStatus
    kind: str | None = None  # error taxonomy, None on success
    message: str = ""
    exit_code: int | None = None
    output: str = ""
    hint: str | None = None
    duration: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status is StepStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "status": self.status.value,
            "kind": self.kind,
            "message": self.message,
            "exit_code": self.exit_code,
            "output": self.output,
            "hint": self.hint,
            "duration": round(self.duration, 3),
        }


@dataclass
class Run:
    """One execution of a job, triggered by one event."""
    job: Job
    event: Event
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: RunStatus = RunStatus.PENDING
    outcomes: List[StepOutcome] = field(default_factory=list)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def start(self) -> None:
        if self.status is not RunStatus.PENDING:
            raise RuntimeError(f"run {self.id} cannot start from {self.status.value}")
        self.status = RunStatus.RUNNING
        self.started_at = time.time()

    def finish(self) -> RunStatus:
        if self.status is not RunStatus.RUNNING:
            raise RuntimeError(f"run {self.id} cannot finish from {self.status.value}")
        failed = any(o.failed for o in self.outcomes)
        self.status = RunStatus.FAILED if failed else RunStatus.SUCCEEDED
        self.finished_at = time.time()
        return self.status

    @property
    def failed_step(self) -> StepOutcome | None:
        return next((o for o in self.outcomes if o.failed), None)

    def to_dict(self) -> dict:
        """Serializable run record. Secret env values appear as references only."""
        return {
            "id": self.id,
            "job": self.job.name,
            "runs_on": self.job.runs_on,
            "event": {
                "kind": self.event.kind,
                "branch": self.event.branch,
                "sha": self.event.sha,
                "repository": self.event.repository,
            },
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "steps": [
                {
                    "name": s.name,
                    "run": s.run,
                    "uses": s.uses,
                    "env": {k: str(v) for k, v in s.env.items()},
                }
                for s in self.job.steps
            ],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass(frozen=True)
class ArtifactFile:
    path: str  # relative to the artifact root
    size: int
    sha256: str


@dataclass(frozen=True)
class Artifact:
    name: str
    run_id: str
    files: Tuple[ArtifactFile, ...]
    root: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "run_id": self.run_id,
            "files": [{"path": f.path, "size": f.size, "sha256": f.sha256} for f in self.files],
        }
