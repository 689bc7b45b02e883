from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_STATE_DIR = ".trunkci"
DEFAULT_SECRET_PREFIX = "TRUNKCI_SECRET_"
COLOR_CHOICES = ("always", "never", "auto")


@dataclass(frozen=True)
class Settings:
    state_dir: Path
    secret_prefix: str
    secrets_file: Optional[Path]
    color: str


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    environ = os.environ if environ is None else environ

    color = environ.get("TRUNKCI_COLOR", "auto").lower()
    if color not in COLOR_CHOICES:
        raise ValueError(f"TRUNKCI_COLOR must be one of {COLOR_CHOICES}, got {color!r}")
    if environ.get("NO_COLOR"):
        color = "never"

    secrets_file = environ.get("TRUNKCI_SECRETS_FILE")
    return Settings(
        state_dir=Path(environ.get("TRUNKCI_STATE_DIR", DEFAULT_STATE_DIR)),
        secret_prefix=environ.get("TRUNKCI_SECRET_PREFIX", DEFAULT_SECRET_PREFIX),
        secrets_file=Path(secrets_file) if secrets_file else None,
        color=color,
    )


def use_color(choice: str, stream=None) -> bool:
    if choice == "always":
        return True
    if choice == "never":
        return False
    stream = stream or sys.stdout
    return bool(getattr(stream, "isatty", lambda: False)())
