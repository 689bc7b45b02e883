# actions/checkout.py
from __future__ import annotations

from typing import Mapping

from ..context import ExecutionContext
from ..errors import CIError
from ..git_facts.git import GitError, checkout, clone, head_sha, repo_root
from ..model import Step


def run_step(step: Step, ctx: ExecutionContext, env: Mapping[str, str]) -> str:
    """
    Clone the repository into the run's workspace and check out the ref.

    Parameters (step.with_):
        repository: URL or local path, defaults to the event's repository,
                    then to the git repo trunkci is started from
        ref:        branch, tag or sha, defaults to the event's sha, then branch
    """
    params = step.with_ or {}
    repository = params.get("repository") or ctx.event.repository
    ref = params.get("ref") or ctx.event.sha or ctx.event.branch

    try:
        if not repository:
            repository = str(repo_root())
        if any(ctx.workspace.iterdir()):
            raise CIError(
                kind="checkout_failed",
                job=ctx.job.name,
                step=step.name,
                message=f"workspace is not empty: {ctx.workspace}",
            )
        clone(str(repository), ctx.workspace)
        checkout(str(ref), ctx.workspace)
        sha = head_sha(ctx.workspace)
    except GitError as e:
        raise CIError(
            kind="checkout_failed",
            job=ctx.job.name,
            step=step.name,
            message=str(e),
            details={"repository": repository, "ref": ref},
        )

    return f"checked out {repository}@{ref} ({sha[:12]}) into {ctx.workspace}"
