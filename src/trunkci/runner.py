# runner.py
from __future__ import annotations

import json
import os
import runpy
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .actions import resolve_action
from .artifacts import ArtifactStore
from .context import ExecutionContext
from .dag import index_jobs, job_levels, plan_level
from .errors import CIError, StepFailure
from .model import Event, Job, Pipeline, Run, RunStatus, Step, StepOutcome, StepStatus
from .secrets import SecretStore, redact, resolve as resolve_secrets
from .settings import DEFAULT_SECRET_PREFIX, DEFAULT_STATE_DIR
from .triggers import should_run
from .ui.console import Console, get_console


TOOL_HINTS = {
    "cargo": "Install the Rust toolchain (rustup) or fix PATH.",
    "git": "Install Git or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "python3": "Install Python 3 or fix PATH (python3).",
}

OUTPUT_TAIL = 4000
COMMAND_NOT_FOUND = 127


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a python file path.

    The file must define either:
      - pipeline() -> Pipeline
      - PIPELINE = Pipeline(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"trunkci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    found = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        try:
            found = globals_dict["pipeline"]()
        except TypeError as e:
            if "required positional argument" in str(e):
                raise TypeError(
                    "Your pipeline() is being called with no arguments but expects some "
                    "(name collision with the DSL helper?). Import the helper as "
                    "`from trunkci import dsl` and call `dsl.pipeline(...)` inside `def pipeline():`."
                ) from e
            raise
    elif "PIPELINE" in globals_dict:
        found = globals_dict["PIPELINE"]

    if not isinstance(found, Pipeline):
        raise TypeError(
            "Workflow must return/define a Pipeline. "
            "Define pipeline() -> Pipeline or PIPELINE = Pipeline(...)."
        )
    return found


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _tail(text: str) -> str:
    return text[-OUTPUT_TAIL:] if text else ""


def _hint_for(cmd: str) -> Optional[str]:
    words = cmd.split()
    tool = words[0] if words else ""
    return TOOL_HINTS.get(tool, f"Install {tool} or fix PATH." if tool else None)


def _run_command(step: Step, ctx: ExecutionContext, env: Mapping[str, str]) -> str:
    cwd = (ctx.workspace / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise CIError(
            kind="cwd_missing",
            job=ctx.job.name,
            step=step.name,
            message=f"cwd not found: {cwd}",
        )

    proc = subprocess.run(
        step.run,
        shell=True,
        cwd=str(cwd),
        env=dict(env),
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )

    if proc.returncode != 0:
        raise StepFailure(
            job=ctx.job.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            output=proc.stdout or "",
        )
    return proc.stdout or ""


def step_env(step: Step, ctx: ExecutionContext, secret_bindings: Mapping[str, str]) -> Dict[str, str]:
    """Context env, then the step's plain env, then its resolved secrets."""
    env = dict(ctx.env)
    env.update(step.plain_env)
    env.update(secret_bindings)
    return env


def run_step(step: Step, ctx: ExecutionContext, secrets: Mapping[str, str]) -> StepOutcome:
    """
    Execute one step and describe how it ended.

    Never raises for step-level problems: missing secrets, unknown actions,
    non-zero exits and action errors all come back as failed outcomes.
    Anything derived from the step's secret values is redacted first.
    """
    started = time.monotonic()
    secret_values: List[str] = []

    def failed(kind: str, message: str, **extra) -> StepOutcome:
        return StepOutcome(
            step=step.name,
            status=StepStatus.FAILED,
            kind=kind,
            message=redact(message, secret_values),
            output=redact(_tail(extra.pop("output", "")), secret_values),
            duration=time.monotonic() - started,
            **extra,
        )

    try:
        bindings = resolve_secrets(step, secrets, job=ctx.job.name)
        secret_values = list(bindings.values())
        env = step_env(step, ctx, bindings)

        if step.uses is not None:
            handler = resolve_action(step.uses)
            if handler is None:
                raise CIError(
                    kind="unknown_action",
                    job=ctx.job.name,
                    step=step.name,
                    message=f"unknown action {step.uses!r}",
                )
            output = handler(step, ctx, env)
        else:
            output = _run_command(step, ctx, env)

    except StepFailure as e:
        hint = _hint_for(e.cmd) if e.exit_code == COMMAND_NOT_FOUND else None
        return failed("command_failed", str(e), exit_code=e.exit_code, output=e.output, hint=hint)
    except CIError as e:
        return failed(e.kind, e.message)
    except Exception as e:
        return failed("action_error", f"{type(e).__name__}: {e}")

    return StepOutcome(
        step=step.name,
        status=StepStatus.SUCCEEDED,
        output=redact(_tail(output), secret_values),
        duration=time.monotonic() - started,
    )


def run_steps(
    steps: Sequence[Step],
    ctx: ExecutionContext,
    secrets: Mapping[str, str],
) -> Tuple[List[StepOutcome], RunStatus]:
    """
    Run steps in order, stopping at the first failure.

    Returns the outcomes of the steps that ran and the terminal status.
    """
    outcomes: List[StepOutcome] = []
    for step in steps:
        ctx.console.print_step(step.name)
        outcome = run_step(step, ctx, secrets)
        ctx.console.print_step_outcome(outcome)
        outcomes.append(outcome)
        if outcome.failed:
            break

    status = RunStatus.FAILED if any(o.failed for o in outcomes) else RunStatus.SUCCEEDED
    return outcomes, status


# ----------------------------------------------------------------------
# Runs
# ----------------------------------------------------------------------

def ambient_env(secret_prefix: str = DEFAULT_SECRET_PREFIX) -> Dict[str, str]:
    """Process environment without secret-store variables."""
    return {k: v for k, v in os.environ.items() if not k.startswith(secret_prefix)}


def run_job(
    job: Job,
    event: Event,
    *,
    state_dir: str | Path = DEFAULT_STATE_DIR,
    secrets: Optional[Mapping[str, str]] = None,
    pipeline_env: Optional[Mapping[str, str]] = None,
    base_env: Optional[Mapping[str, str]] = None,
    console: Optional[Console] = None,
) -> Run:
    """
    Instantiate a Run for `job` and execute it in its own workspace.

    The secret-free run record is written to <state_dir>/runs/<id>/run.json.
    """
    console = console or get_console()
    secrets = secrets if secrets is not None else SecretStore()
    state = Path(state_dir).expanduser().resolve()

    run = Run(job=job, event=event)
    run_dir = state / "runs" / run.id
    workspace = run_dir / "workspace"
    workspace.mkdir(parents=True, exist_ok=False)

    env = dict(base_env if base_env is not None else ambient_env())
    env.update(pipeline_env or {})
    env.update(job.env or {})
    env.update({
        "CI": "true",
        "TRUNKCI": "true",
        "TRUNKCI_RUN_ID": run.id,
        "TRUNKCI_JOB": job.name,
        "TRUNKCI_EVENT_NAME": event.kind,
        "TRUNKCI_REF_NAME": event.branch,
        "TRUNKCI_WORKSPACE": str(workspace),
    })
    if event.sha:
        env["TRUNKCI_SHA"] = event.sha

    ctx = ExecutionContext.create(
        run_id=run.id,
        job=job,
        event=event,
        workspace=workspace,
        env=env,
        artifacts=ArtifactStore(state / "artifacts"),
        console=console,
    )

    console.print_job_start(job.name, run.id, job.runs_on)
    run.start()
    outcomes, _status = run_steps(job.steps, ctx, secrets)
    run.outcomes.extend(outcomes)
    run.finish()
    console.print_job_finished(run)

    (run_dir / "run.json").write_text(json.dumps(run.to_dict(), indent=2), encoding="utf-8")
    return run


@dataclass
class PipelineResult:
    pipeline: str
    event: Event
    triggered: bool
    runs: List[Run] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return (
            self.triggered
            and not self.skipped
            and all(r.status is RunStatus.SUCCEEDED for r in self.runs)
        )


def run_pipeline(
    pipeline: Pipeline,
    event: Event,
    *,
    state_dir: str | Path = DEFAULT_STATE_DIR,
    secrets: Optional[Mapping[str, str]] = None,
    base_env: Optional[Mapping[str, str]] = None,
    console: Optional[Console] = None,
    max_workers: int | None = None,
) -> PipelineResult:
    """
    Evaluate the trigger and, on a match, run every job as its own Run.

    Jobs are scheduled level by level along `needs`; jobs of one level
    run concurrently. A job whose dependency failed or was skipped is skipped.
    """
    if not should_run(pipeline, event):
        return PipelineResult(pipeline=pipeline.name, event=event, triggered=False)

    by_name = index_jobs(pipeline.jobs)
    levels = job_levels(pipeline.jobs)

    runs: Dict[str, Run] = {}
    skipped: List[str] = []
    blocked: set[str] = set()

    for level in levels:
        ready, held = plan_level(level, by_name, blocked)
        skipped.extend(held)
        if not ready:
            continue

        workers = max_workers or len(ready)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(
                    run_job,
                    by_name[name],
                    event,
                    state_dir=state_dir,
                    secrets=secrets,
                    pipeline_env=pipeline.env,
                    base_env=base_env,
                    console=console,
                ): name
                for name in ready
            }
            for fut in as_completed(futures):
                name = futures[fut]
                run = fut.result()
                runs[name] = run
                if run.status is not RunStatus.SUCCEEDED:
                    blocked.add(name)

    ordered = [runs[j.name] for j in pipeline.jobs if j.name in runs]
    skipped_ordered = [j.name for j in pipeline.jobs if j.name in skipped]
    return PipelineResult(
        pipeline=pipeline.name,
        event=event,
        triggered=True,
        runs=ordered,
        skipped=skipped_ordered,
    )
