# dag.py
# Orders a pipeline's jobs along `needs` and decides which ones may start.
from __future__ import annotations

from typing import Dict, Iterable, List, Set, Tuple

from .model import Job


def index_jobs(jobs: Iterable[Job]) -> Dict[str, Job]:
    """
    Map job names to jobs, rejecting duplicate names and unknown `needs`.
    """
    by_name: Dict[str, Job] = {}
    dupes: Set[str] = set()
    for job in jobs:
        if job.name in by_name:
            dupes.add(job.name)
        by_name[job.name] = job
    if dupes:
        raise ValueError(f"Duplicate job names found: {sorted(dupes)}")

    for job in by_name.values():
        for dep in job.needs:
            if dep not in by_name:
                raise ValueError(
                    f"Job '{job.name}' needs missing job '{dep}'. "
                    f"Known jobs: {sorted(by_name)}"
                )
    return by_name


def job_levels(jobs: Iterable[Job]) -> List[List[str]]:
    """
    Group jobs into waves: every job lands in the first wave after all
    of its `needs`. Names inside a wave are sorted.
    """
    pending = {name: set(job.needs) for name, job in index_jobs(jobs).items()}
    done: Set[str] = set()
    levels: List[List[str]] = []

    while pending:
        wave = sorted(name for name, deps in pending.items() if deps <= done)
        if not wave:
            raise ValueError(f"Job graph has a cycle. Stuck jobs: {sorted(pending)}")
        for name in wave:
            del pending[name]
        done.update(wave)
        levels.append(wave)

    return levels


def blocked_by(job: Job, blocked: Set[str]) -> List[str]:
    """The job's `needs` that failed or were skipped."""
    return [dep for dep in job.needs if dep in blocked]


def plan_level(
    level: Iterable[str],
    by_name: Dict[str, Job],
    blocked: Set[str],
) -> Tuple[List[str], List[str]]:
    """
    Split one wave into jobs to start and jobs to skip.

    Skipped jobs are added to `blocked` so their own dependents are
    skipped in later waves.
    """
    ready: List[str] = []
    skipped: List[str] = []
    for name in level:
        if blocked_by(by_name[name], blocked):
            skipped.append(name)
            blocked.add(name)
        else:
            ready.append(name)
    return ready, skipped
