# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - a step outcome in the run record
      - debugging without full tracebacks
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"job={self.job}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class SecretMissing(CIError):
    """A step declared secrets that the store does not hold."""

    def __init__(self, job: str, step: str, names: list[str]):
        super().__init__(
            kind="secret_missing",
            job=job,
            step=step,
            message=f"secret(s) not configured: {', '.join(names)}",
            details={"missing": names},
        )


class ArtifactNotFound(CIError):
    def __init__(self, job: str, step: str, name: str, path: str):
        super().__init__(
            kind="artifact_not_found",
            job=job,
            step=step,
            message=f"no files found for artifact {name!r} with path {path!r}",
            details={"artifact": name, "path": path},
        )


@dataclass
class StepFailure(Exception):
    """An inline command exited non-zero."""
    job: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"
