from .dsl import checkout, job, on, pipeline, secret, sh, upload_artifact, uses
from .model import Event, Job, Pipeline, Run, RunStatus, Step, StepOutcome
from .runner import load_workflow, run_job, run_pipeline, run_steps
from .secrets import SecretStore
from .triggers import matches, should_run

__all__ = [
    "checkout", "job", "on", "pipeline", "secret", "sh", "upload_artifact", "uses",
    "Event", "Job", "Pipeline", "Run", "RunStatus", "Step", "StepOutcome",
    "load_workflow", "run_job", "run_pipeline", "run_steps",
    "SecretStore", "matches", "should_run",
]
