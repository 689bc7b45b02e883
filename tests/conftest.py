import os
from pathlib import Path

import pytest

from trunkci.artifacts import ArtifactStore
from trunkci.context import ExecutionContext
from trunkci.model import Event, Job
from trunkci.ui.console import Console


@pytest.fixture
def console():
    return Console()


@pytest.fixture
def base_env():
    return {"PATH": os.environ.get("PATH", "/usr/bin:/bin")}


@pytest.fixture
def state_dir(tmp_path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def push_master():
    return Event(kind="push", branch="master")


@pytest.fixture
def make_ctx(tmp_path, console, base_env, push_master):
    """Build an ExecutionContext around a fresh workspace."""

    def _make(job=None, env=None, run_id="run-1"):
        workspace = tmp_path / "ws" / run_id
        workspace.mkdir(parents=True, exist_ok=True)
        return ExecutionContext.create(
            run_id=run_id,
            job=job or Job(name="build", steps=[]),
            event=push_master,
            workspace=workspace,
            env={**base_env, **(env or {})},
            artifacts=ArtifactStore(tmp_path / "artifacts"),
            console=console,
        )

    return _make
