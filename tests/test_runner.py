import json

import pytest

from trunkci import dsl
from trunkci.model import Event, Job, Run, RunStatus, StepStatus
from trunkci.runner import load_workflow, run_job, run_pipeline, run_step, run_steps
from trunkci.secrets import SecretStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def marker_steps(n, fail_at=None):
    """n steps that each touch ran_<i>; step `fail_at` exits 3 instead."""
    steps = []
    for i in range(n):
        if i == fail_at:
            steps.append(dsl.sh(f"step-{i}", f"touch ran_{i} && exit 3"))
        else:
            steps.append(dsl.sh(f"step-{i}", f"touch ran_{i}"))
    return steps


SECRETS = SecretStore({"LITCHI_USERNAME": "pilot-user", "LITCHI_PASSWORD": "s3cret-pass"})


def secret_step(cmd="printenv LITCHI_USERNAME LITCHI_PASSWORD"):
    return dsl.sh(
        "Run tests",
        cmd,
        env={
            "LITCHI_USERNAME": dsl.secret("LITCHI_USERNAME"),
            "LITCHI_PASSWORD": dsl.secret("LITCHI_PASSWORD"),
        },
    )


# ---------------------------------------------------------------------------
# run_step / run_steps
# ---------------------------------------------------------------------------


def test_successful_step_outcome(make_ctx):
    outcome = run_step(dsl.sh("hello", "echo hello"), make_ctx(), SecretStore())
    assert outcome.status is StepStatus.SUCCEEDED
    assert outcome.kind is None
    assert "hello" in outcome.output


def test_nonzero_exit_is_failed_outcome(make_ctx):
    outcome = run_step(dsl.sh("boom", "echo oops; exit 4"), make_ctx(), SecretStore())
    assert outcome.failed
    assert outcome.kind == "command_failed"
    assert outcome.exit_code == 4
    assert "oops" in outcome.output


def test_missing_command_gets_hint(make_ctx):
    outcome = run_step(dsl.sh("tool", "definitely-not-a-tool-xyz --version"), make_ctx(), SecretStore())
    assert outcome.exit_code == 127
    assert outcome.hint == "Install definitely-not-a-tool-xyz or fix PATH."


def test_missing_cwd_fails(make_ctx):
    outcome = run_step(dsl.sh("in sub", "true", cwd="nope"), make_ctx(), SecretStore())
    assert outcome.kind == "cwd_missing"


def test_unknown_action_fails(make_ctx):
    outcome = run_step(dsl.uses("mystery", "someone/mystery@v1"), make_ctx(), SecretStore())
    assert outcome.kind == "unknown_action"


@pytest.mark.parametrize("k", [0, 1, 2, 3])
def test_fail_fast_stops_after_failing_step(make_ctx, k):
    ctx = make_ctx()
    outcomes, status = run_steps(marker_steps(4, fail_at=k), ctx, SecretStore())

    assert status is RunStatus.FAILED
    assert len(outcomes) == k + 1
    assert outcomes[-1].failed
    assert all(not o.failed for o in outcomes[:-1])
    for i in range(4):
        assert (ctx.workspace / f"ran_{i}").exists() == (i <= k)


def test_all_steps_succeed(make_ctx):
    ctx = make_ctx()
    outcomes, status = run_steps(marker_steps(3), ctx, SecretStore())
    assert status is RunStatus.SUCCEEDED
    assert [o.step for o in outcomes] == ["step-0", "step-1", "step-2"]


def test_secrets_visible_only_to_declaring_step(make_ctx):
    ctx = make_ctx()
    steps = [
        secret_step("test \"$LITCHI_USERNAME\" = pilot-user && test \"$LITCHI_PASSWORD\" = s3cret-pass"),
        dsl.sh("Release Build", "test -z \"$LITCHI_USERNAME\" && test -z \"$LITCHI_PASSWORD\""),
    ]
    outcomes, status = run_steps(steps, ctx, SECRETS)
    assert status is RunStatus.SUCCEEDED, [o.message for o in outcomes]
    assert "LITCHI_USERNAME" not in ctx.env


def test_secret_values_are_redacted_from_output(make_ctx):
    outcome = run_step(secret_step(), make_ctx(), SECRETS)
    assert outcome.status is StepStatus.SUCCEEDED
    assert "pilot-user" not in outcome.output
    assert "s3cret-pass" not in outcome.output
    assert "***" in outcome.output


def test_missing_secret_fails_before_command_runs(make_ctx):
    ctx = make_ctx()
    steps = [
        secret_step("touch ran_tests"),
        dsl.sh("Release Build", "touch ran_build"),
        dsl.upload_artifact("out", "ran_build", if_no_files_found="error"),
    ]
    outcomes, status = run_steps(steps, ctx, SecretStore({"LITCHI_USERNAME": "pilot-user"}))

    assert status is RunStatus.FAILED
    assert len(outcomes) == 1
    assert outcomes[0].kind == "secret_missing"
    assert "LITCHI_PASSWORD" in outcomes[0].message
    assert not (ctx.workspace / "ran_tests").exists()
    assert not (ctx.workspace / "ran_build").exists()


def test_step_env_overrides_context_env(make_ctx):
    ctx = make_ctx(env={"CARGO_TERM_COLOR": "always", "MODE": "ctx"})
    step = dsl.sh("env", "test \"$MODE\" = step && test \"$CARGO_TERM_COLOR\" = always", env={"MODE": "step"})
    assert run_step(step, ctx, SecretStore()).status is StepStatus.SUCCEEDED


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


def test_run_state_machine(push_master):
    run = Run(job=Job(name="build", steps=[]), event=push_master)
    assert run.status is RunStatus.PENDING
    with pytest.raises(RuntimeError):
        run.finish()
    run.start()
    assert run.status is RunStatus.RUNNING
    assert run.finish() is RunStatus.SUCCEEDED
    with pytest.raises(RuntimeError):
        run.start()


def test_run_job_persists_secret_free_record(state_dir, console, base_env, push_master):
    job = dsl.job("build", secret_step("echo $LITCHI_PASSWORD; exit 1"))
    run = run_job(job, push_master, state_dir=state_dir, secrets=SECRETS, base_env=base_env, console=console)

    assert run.status is RunStatus.FAILED
    record_path = state_dir / "runs" / run.id / "run.json"
    raw = record_path.read_text()
    assert "s3cret-pass" not in raw
    assert "pilot-user" not in raw

    record = json.loads(raw)
    assert record["status"] == "failed"
    assert record["steps"][0]["env"]["LITCHI_PASSWORD"] == "${{ secrets.LITCHI_PASSWORD }}"
    assert record["outcomes"][0]["exit_code"] == 1


def test_run_job_exposes_run_metadata(state_dir, console, base_env):
    event = Event(kind="pull_request", branch="master", sha="abc123")
    job = dsl.job(
        "meta",
        dsl.sh(
            "check",
            "test \"$CI\" = true && test \"$TRUNKCI_EVENT_NAME\" = pull_request "
            "&& test \"$TRUNKCI_REF_NAME\" = master && test \"$TRUNKCI_SHA\" = abc123 "
            "&& test \"$JOBVAR\" = 1 && test \"$PIPEVAR\" = 2",
        ),
        env={"JOBVAR": "1"},
    )
    run = run_job(job, event, state_dir=state_dir, pipeline_env={"PIPEVAR": "2"}, base_env=base_env, console=console)
    assert run.status is RunStatus.SUCCEEDED, run.outcomes


def test_identical_events_create_independent_runs(state_dir, console, base_env, push_master):
    job = dsl.job("build", dsl.sh("fresh workspace", "test ! -e stamp && touch stamp"))
    first = run_job(job, push_master, state_dir=state_dir, base_env=base_env, console=console)
    second = run_job(job, push_master, state_dir=state_dir, base_env=base_env, console=console)

    assert first.id != second.id
    assert first.status is second.status is RunStatus.SUCCEEDED
    assert [o.status for o in first.outcomes] == [o.status for o in second.outcomes]


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


def make_pipeline(*jobs):
    return dsl.pipeline("ci", *jobs, on=dsl.on(push=["master"], pull_request=["master"]))


def test_non_matching_event_creates_no_run(state_dir, console, base_env):
    p = make_pipeline(dsl.job("build", dsl.sh("noop", "true")))
    result = run_pipeline(p, Event(kind="push", branch="develop"), state_dir=state_dir, base_env=base_env, console=console)

    assert result.triggered is False
    assert result.runs == []
    assert result.succeeded is False
    assert not (state_dir / "runs").exists()


@pytest.mark.parametrize("kind", ["push", "pull_request"])
def test_matching_event_creates_one_run_per_job(state_dir, console, base_env, kind):
    p = make_pipeline(dsl.job("build", dsl.sh("noop", "true")))
    result = run_pipeline(p, Event(kind=kind, branch="master"), state_dir=state_dir, base_env=base_env, console=console)

    assert result.triggered
    assert len(result.runs) == 1
    assert result.succeeded


def test_dependent_job_skipped_after_failure(state_dir, console, base_env, push_master):
    p = make_pipeline(
        dsl.job("lint", dsl.sh("fail", "exit 1")),
        dsl.job("unit", dsl.sh("ok", "true")),
        dsl.job("release", dsl.sh("ok", "true"), needs=["lint", "unit"]),
        dsl.job("publish", dsl.sh("ok", "true"), needs=["release"]),
    )
    result = run_pipeline(p, push_master, state_dir=state_dir, base_env=base_env, console=console)

    assert [r.job.name for r in result.runs] == ["lint", "unit"]
    assert result.runs[0].status is RunStatus.FAILED
    assert result.runs[1].status is RunStatus.SUCCEEDED
    assert result.skipped == ["release", "publish"]
    assert not result.succeeded


def test_load_shipped_workflow():
    from pathlib import Path

    wf = Path(__file__).resolve().parents[1] / "trunkci_workflow.py"
    p = load_workflow(wf)

    assert p.name == "Rust"
    assert p.triggers == {"push": ("master",), "pull_request": ("master",)}
    assert p.env == {"CARGO_TERM_COLOR": "always"}
    (job,) = p.jobs
    assert job.runs_on == "ubuntu-latest"
    assert [s.name for s in job.steps] == ["Checkout", "Run tests", "Release Build", "Upload CLI artifact"]
    assert job.steps[1].secret_names == ["LITCHI_USERNAME", "LITCHI_PASSWORD"]
    assert job.steps[3].with_["if_no_files_found"] == "error"


def test_load_workflow_rejects_wrong_type(tmp_path):
    wf = tmp_path / "bad_workflow.py"
    wf.write_text("PIPELINE = ['not', 'a', 'pipeline']\n")
    with pytest.raises(TypeError):
        load_workflow(wf)


def test_load_workflow_requires_py(tmp_path):
    wf = tmp_path / "workflow.yml"
    wf.write_text("name: nope\n")
    with pytest.raises(ValueError):
        load_workflow(wf)
