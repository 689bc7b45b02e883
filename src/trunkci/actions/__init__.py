"""Built-in actions a step can reference with `uses=`."""
from __future__ import annotations

from typing import Callable, Dict, Mapping

from ..context import ExecutionContext
from ..model import Step
from . import checkout, upload_artifact

# (step, ctx, step_env) -> text for the step log; raise CIError to fail
ActionHandler = Callable[[Step, ExecutionContext, Mapping[str, str]], str]

ACTIONS: Dict[str, ActionHandler] = {
    "checkout": checkout.run_step,
    "upload-artifact": upload_artifact.run_step,
}

ALIASES = {
    "actions/checkout": "checkout",
    "actions/upload-artifact": "upload-artifact",
}


def resolve_action(ref: str) -> ActionHandler | None:
    """Look up 'checkout', 'actions/checkout' or 'actions/checkout@v3'."""
    name = ref.split("@", 1)[0].strip()
    name = ALIASES.get(name, name)
    return ACTIONS.get(name)
