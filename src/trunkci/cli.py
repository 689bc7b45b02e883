# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from trunkci.artifacts import ArtifactStore
from trunkci.git_facts.git import GitError, current_branch, head_sha
from trunkci.model import EVENT_KINDS, Event
from trunkci.runner import ambient_env, load_workflow, run_pipeline
from trunkci.secrets import SecretStore
from trunkci.settings import COLOR_CHOICES, load_settings, use_color
from trunkci.triggers import normalize_branch, should_run
from trunkci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "trunkci_workflow.py"


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    default_workflow = current_dir / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in current_dir.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  trunkci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  trunkci run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  trunkci run --workflow {DEFAULT_WORKFLOW}",
        )
        sys.exit(1)

    return workflow_files[0]


def _event_from_options(
    kind: str,
    branch: str | None,
    sha: str | None = None,
    repository: str | None = None,
    *,
    lookup_sha: bool = True,
) -> Event:
    """Fill branch/sha from the local git checkout when not given."""
    console = get_console()
    if not branch:
        try:
            branch = current_branch()
            console.print_debug(f"Using git branch: {branch}")
        except GitError as e:
            console.print_error(
                "Could not determine branch",
                str(e),
                suggestion="Specify the branch explicitly:\n  trunkci run --branch master",
            )
            sys.exit(1)
    if lookup_sha and not sha and not repository:
        try:
            sha = head_sha()
        except GitError:
            sha = None
    return Event(kind=kind, branch=normalize_branch(branch), sha=sha, repository=repository)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option(
    "--color",
    type=click.Choice(COLOR_CHOICES),
    default=None,
    help="Colorize output (defaults to TRUNKCI_COLOR, else auto)",
)
@click.pass_context
def cli(ctx, debug, color):
    """trunkci: run a CI pipeline locally, fail-fast, with run-scoped artifacts."""
    try:
        settings = load_settings()
    except ValueError as e:
        raise click.UsageError(str(e))
    console = Console(debug=debug, color=use_color(color or settings.color))
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings


event_options = [
    click.option("--event", "event_kind", type=click.Choice(EVENT_KINDS), default="push", show_default=True, help="Event kind"),
    click.option("--branch", default=None, help="Event branch (defaults to the current git branch)"),
]


def with_event_options(fn):
    for option in reversed(event_options):
        fn = option(fn)
    return fn


@cli.command()
@click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@with_event_options
@click.option("--sha", default=None, help="Commit to check out (defaults to HEAD of the local repo)")
@click.option("--repository", default=None, help="Repository to check out (defaults to the local repo)")
@click.option("--state-dir", default=None, help="Where runs and artifacts are kept (defaults to TRUNKCI_STATE_DIR or .trunkci)")
@click.option("--secrets-file", default=None, type=click.Path(exists=True, dir_okay=False), help="JSON file of secret values")
@click.option("--workers", default=None, type=int, help="Max jobs run in parallel")
@click.pass_context
def run(ctx, workflow, event_kind, branch, sha, repository, state_dir, secrets_file, workers):
    """Run the workflow for an event."""
    console = get_console()
    settings = ctx.obj["settings"]

    workflow_path = discover_workflow(workflow)
    event = _event_from_options(event_kind, branch, sha, repository)

    try:
        pipeline = load_workflow(workflow_path)

        secrets = SecretStore.from_env(prefix=settings.secret_prefix)
        secrets_path = secrets_file or settings.secrets_file
        if secrets_path:
            secrets = secrets.merged(SecretStore.from_file(secrets_path))
        console.print_debug(f"Secrets available: {len(secrets)}")

        event_label = f"{event.kind} to {event.branch}"
        if not should_run(pipeline, event):
            console.print_not_triggered(pipeline.name, event_label)
            return

        console.print_run_started(
            pipeline=pipeline.name,
            workflow=workflow_path.name,
            event=event_label,
            job_count=len(pipeline.jobs),
        )

        result = run_pipeline(
            pipeline,
            event,
            state_dir=state_dir or settings.state_dir,
            secrets=secrets,
            base_env=ambient_env(settings.secret_prefix),
            console=console,
            max_workers=workers,
        )

        console.print_results(result.runs, result.skipped)

        if not result.succeeded:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@click.option("--workflow", default=None, help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)")
@with_event_options
@click.pass_context
def check(ctx, workflow, event_kind, branch):
    """Tell whether an event would trigger the workflow (exit 0 if it does)."""
    console = get_console()
    workflow_path = discover_workflow(workflow)
    event = _event_from_options(event_kind, branch, lookup_sha=False)

    try:
        pipeline = load_workflow(workflow_path)
    except Exception as e:
        console.print_error("Failed to load workflow", f"Could not load workflow from {workflow_path}", details=[str(e)])
        sys.exit(1)

    if should_run(pipeline, event):
        console.print_info(f"{event.kind} to {event.branch}: triggers '{pipeline.name}'")
        return
    console.print_info(f"{event.kind} to {event.branch}: does not trigger '{pipeline.name}'")
    sys.exit(1)


@cli.command()
@click.argument("run_id")
@click.option("--state-dir", default=None, help="Where runs and artifacts are kept")
@click.pass_context
def artifacts(ctx, run_id, state_dir):
    """List the artifacts a run published."""
    console = get_console()
    settings = ctx.obj["settings"]
    store = ArtifactStore(Path(state_dir or settings.state_dir) / "artifacts")

    found = store.list(run_id)
    if not found:
        console.print_info(f"No artifacts for run {run_id}")
        return
    for artifact in found:
        console.print_header(artifact.name)
        for f in artifact.files:
            console.print_info(f"  {f.path}  {f.size} bytes  sha256:{f.sha256}")
        console.print_info(f"  stored in {artifact.root}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
