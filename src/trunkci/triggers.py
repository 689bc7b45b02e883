# triggers.py
# Decides whether an incoming event starts a pipeline run.
from __future__ import annotations

from typing import Iterable, Mapping

from .model import Event, Pipeline


def normalize_branch(ref: str) -> str:
    """Turn 'refs/heads/master' into 'master'; plain branch names pass through."""
    prefix = "refs/heads/"
    return ref[len(prefix):] if ref.startswith(prefix) else ref


def branch_names(branches) -> tuple[str, ...]:
    """A bare string is one branch name, not a sequence of characters."""
    if branches is None:
        return ()
    if isinstance(branches, str):
        return (branches,)
    return tuple(branches)


def matches(triggers: Mapping[str, Iterable[str]], event: Event) -> bool:
    """
    True if the event kind is configured and its branch is listed for that kind.

    Branch comparison is exact string equality, no wildcards.
    """
    return event.branch in branch_names(triggers.get(event.kind))


def should_run(pipeline: Pipeline, event: Event) -> bool:
    return matches(pipeline.triggers, event)
