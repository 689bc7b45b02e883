# secrets.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional

from .errors import SecretMissing
from .model import SecretRef, Step

REDACTED = "***"


class SecretStore(Mapping[str, str]):
    """
    Read-only name -> value lookup for pipeline secrets.

    Values are only handed out through `resolve()`; repr and iteration
    expose names, never values.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = {str(k): str(v) for k, v in (values or {}).items()}

    @classmethod
    def from_env(
        cls,
        prefix: str = "TRUNKCI_SECRET_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "SecretStore":
        """Collect TRUNKCI_SECRET_<NAME>=value pairs as secret NAME."""
        environ = os.environ if environ is None else environ
        return cls({k[len(prefix):]: v for k, v in environ.items() if k.startswith(prefix) and len(k) > len(prefix)})

    @classmethod
    def from_file(cls, path: str | Path) -> "SecretStore":
        """Load a JSON object of string values."""
        data = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            raise ValueError(f"Secrets file must be a JSON object of strings: {path}")
        return cls(data)

    def merged(self, other: "SecretStore") -> "SecretStore":
        """New store; `other` wins on name clashes."""
        return SecretStore({**self._values, **other._values})

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SecretStore(names={sorted(self._values)})"


def resolve(step: Step, store: Mapping[str, str], job: str = "") -> dict[str, str]:
    """
    Env bindings for the secrets `step` declares, and only those.

    Raises SecretMissing naming every unresolved secret.
    """
    bindings: dict[str, str] = {}
    missing: list[str] = []
    for var, value in step.env.items():
        if not isinstance(value, SecretRef):
            continue
        if value.name in store:
            bindings[var] = store[value.name]
        else:
            missing.append(value.name)
    if missing:
        raise SecretMissing(job=job, step=step.name, names=missing)
    return bindings


def redact(text: str, values: Iterable[str]) -> str:
    # longest first so a secret containing another is masked whole
    for v in sorted({v for v in values if v}, key=len, reverse=True):
        text = text.replace(v, REDACTED)
    return text
