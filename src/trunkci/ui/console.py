"""Console output formatting utilities for trunkci."""

from __future__ import annotations

import sys
from typing import Optional

import click

from ..model import Run, RunStatus, StepOutcome


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, color: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            color: If True, style status lines with ANSI colors
        """
        self.debug = debug
        self.color = color

    def _style(self, text: str, **styles) -> str:
        return click.style(text, **styles) if self.color else text

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        pipeline: str,
        workflow: str,
        event: str,
        job_count: int,
    ) -> None:
        """Print pipeline start information."""
        print("\nPIPELINE STARTED")
        print(f"Pipeline: {pipeline}")
        print(f"Workflow: {workflow}")
        print(f"Event: {event}")
        print(f"Jobs: {job_count}")
        print()

    def print_not_triggered(self, pipeline: str, event: str) -> None:
        print(f"Pipeline '{pipeline}' is not triggered by {event}; nothing to run.")

    def print_job_start(self, name: str, run_id: str, runs_on: str) -> None:
        """Print job start message."""
        print(f"\nJOB STARTED: {name} (run {run_id[:12]}, runs-on {runs_on})")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_step_outcome(self, outcome: StepOutcome) -> None:
        if not outcome.failed:
            print(self._style(f"  ok ({outcome.duration:.1f}s)", fg="green"))
            if self.debug and outcome.output:
                print(outcome.output)
            return
        self.print_failure(
            outcome.step,
            outcome.message,
            exit_code=outcome.exit_code,
            hint=outcome.hint,
        )
        if outcome.output:
            print(outcome.output)

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        is_job: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Job or step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            is_job: If True, print "JOB FAILED", otherwise "STEP FAILED"
        """
        prefix = "JOB FAILED" if is_job else "STEP FAILED"
        print(self._style(f"{prefix}: {name}", fg="red", bold=True))
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_job_finished(self, run: Run) -> None:
        if run.status is RunStatus.SUCCEEDED:
            print(self._style("STATUS: success", fg="green"))
        else:
            print(self._style(f"STATUS: {run.status.value}", fg="red"))

    def print_results(self, runs: list[Run], skipped: list[str]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for run in runs:
            ok = run.status is RunStatus.SUCCEEDED
            status_display = "SUCCESS" if ok else run.status.value.upper()
            line = f"  {run.job.name}: {status_display} (run {run.id[:12]})"
            print(self._style(line, fg="green" if ok else "red"))
        for name in skipped:
            print(self._style(f"  {name}: SKIPPED (dependency failed)", fg="yellow"))

    def print_warning(self, message: str) -> None:
        print(self._style(f"WARNING: {message}", fg="yellow"), file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(self._style(f"\nERROR: {title}", fg="red", bold=True), file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
