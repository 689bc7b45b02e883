# src/trunkci/dsl.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .model import EVENT_KINDS, Job, Pipeline, SecretRef, Step
from .triggers import branch_names


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def secret(name: str) -> SecretRef:
    """Reference a secret by name, e.g. env={"TOKEN": secret("TOKEN")}."""
    return SecretRef(name)


def sh(
    name: str,
    cmd: str,
    *,
    cwd: str | None = None,
    env: Optional[Dict[str, Any]] = None,
) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd, env=dict(env or {}))


def uses(
    step_name: str,
    action: str,
    *,
    env: Optional[Dict[str, Any]] = None,
    cwd: str | None = None,
    **with_: Any,
) -> Step:
    """Create a step that runs a built-in action; keyword arguments become its parameters."""
    return Step(name=step_name, uses=action, with_=dict(with_), env=dict(env or {}), cwd=cwd)


def checkout(name: str = "Checkout", **with_: Any) -> Step:
    return uses(name, "checkout", **with_)


def upload_artifact(
    name: str,
    path: str,
    *,
    step_name: str | None = None,
    if_no_files_found: str = "warn",
) -> Step:
    return uses(
        step_name or f"Upload {name}",
        "upload-artifact",
        name=name,
        path=path,
        if_no_files_found=if_no_files_found,
    )


# ---------------------------------------------------------------------
# Job / pipeline helpers
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,
    runs_on: str = "ubuntu-latest",
    needs: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
) -> Job:
    if not steps:
        raise ValueError(f"job({name!r}) must have at least one step")
    return Job(
        name=name,
        steps=list(steps),
        runs_on=runs_on,
        needs=list(needs or []),
        env={k: str(v) for k, v in (env or {}).items()},
    )


def on(**branches: Iterable[str] | str) -> Dict[str, tuple[str, ...]]:
    """
    Trigger table: on(push=["master"], pull_request=["master"]).
    """
    unknown = sorted(set(branches) - set(EVENT_KINDS))
    if unknown:
        raise ValueError(f"Unknown event kind(s) {unknown}, expected {list(EVENT_KINDS)}")
    return {kind: branch_names(names) for kind, names in branches.items()}


def pipeline(
    name: str,
    *jobs: Job,
    on: Dict[str, Iterable[str]],
    env: Optional[Dict[str, str]] = None,
) -> Pipeline:
    """
    Assemble a pipeline definition. Usage:

        def pipeline():
            return dsl.pipeline(
                "Rust",
                dsl.job("build", dsl.checkout(), dsl.sh("Run tests", "cargo test")),
                on=dsl.on(push=["master"]),
            )
    """
    if not jobs:
        raise ValueError(f"pipeline({name!r}) must have at least one job")
    return Pipeline(
        name=name,
        triggers={kind: branch_names(b) for kind, b in on.items()},
        jobs=tuple(jobs),
        env={k: str(v) for k, v in (env or {}).items()},
    )
