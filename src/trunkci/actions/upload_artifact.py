# actions/upload_artifact.py
from __future__ import annotations

from typing import Mapping

from ..artifacts import resolve_paths, split_patterns
from ..context import ExecutionContext
from ..errors import ArtifactNotFound, CIError
from ..model import Step

NO_FILES_POLICIES = ("warn", "error", "ignore")
DEFAULT_NO_FILES_POLICY = "warn"


def _param(params: Mapping, *names, default=None):
    for n in names:
        if n in params:
            return params[n]
    return default


def run_step(step: Step, ctx: ExecutionContext, env: Mapping[str, str]) -> str:
    """
    Publish files from the workspace as a run-scoped artifact.

    Parameters (step.with_):
        name:               artifact name, default "artifact"
        path:               file, directory or glob (one per line)
        if_no_files_found:  warn (default) | error | ignore
    """
    params = step.with_ or {}
    name = str(_param(params, "name", default="artifact"))
    path = _param(params, "path")
    policy = str(_param(params, "if_no_files_found", "if-no-files-found", default=DEFAULT_NO_FILES_POLICY))

    if not path:
        raise CIError(kind="action_error", job=ctx.job.name, step=step.name, message="upload-artifact requires 'path'")
    if policy not in NO_FILES_POLICIES:
        raise CIError(
            kind="action_error",
            job=ctx.job.name,
            step=step.name,
            message=f"invalid if_no_files_found {policy!r}, expected one of {NO_FILES_POLICIES}",
        )

    cwd = ctx.workspace / (step.cwd or ".")
    files = resolve_paths(cwd, split_patterns(str(path)))

    if not files:
        if policy == "error":
            raise ArtifactNotFound(job=ctx.job.name, step=step.name, name=name, path=str(path))
        if policy == "warn":
            ctx.console.print_warning(f"No files were found with the provided path: {path}. No artifacts will be uploaded.")
        return f"no files found for {path!r}, nothing uploaded"

    try:
        artifact = ctx.artifacts.upload(ctx.run_id, name, files, base=cwd)
    except (OSError, ValueError) as e:
        raise CIError(kind="action_error", job=ctx.job.name, step=step.name, message=str(e), details={"artifact": name})

    listing = "\n".join(f"  {f.path} ({f.size} bytes, sha256 {f.sha256[:12]})" for f in artifact.files)
    return f"uploaded artifact {name!r} with {len(artifact.files)} file(s)\n{listing}"
