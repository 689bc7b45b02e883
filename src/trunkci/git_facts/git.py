# git.py
# Small, focused wrapper around the Git CLI.
# All Git interactions go through here so the rest of the codebase
# never calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


class GitError(RuntimeError):
    pass


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        GitError: git is missing or exited non-zero (stderr is included).
    """
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise GitError("git command not found. Please install Git.")

    if proc.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {proc.stderr.strip()}")
    return proc.stdout.strip()


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """Absolute path of the repository containing `cwd`."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str | Path] = None) -> str:
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_branch(cwd: Optional[str | Path] = None) -> str:
    """
    Name of the checked out branch.

    Falls back to the HEAD sha when detached, which never matches
    a branch trigger.
    """
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if branch == "HEAD":
        return head_sha(cwd)
    return branch


def clone(repository: str, dest: Path) -> Path:
    """Clone `repository` (URL or local path) into `dest`."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    _git(["clone", "--quiet", repository, str(dest)])
    return dest


def checkout(ref: str, cwd: Path) -> None:
    """
    Check out a branch, tag or commit inside a clone.

    Remote branches are only present as origin/<ref> right after a
    clone, so that spelling is tried second.
    """
    try:
        _git(["checkout", "--quiet", ref], cwd=cwd)
    except GitError:
        _git(["checkout", "--quiet", "-B", ref, f"origin/{ref}"], cwd=cwd)
