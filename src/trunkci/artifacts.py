# artifacts.py
from __future__ import annotations

import hashlib
import json
import shutil
from pathlib import Path
from typing import Iterable, List

from .model import Artifact, ArtifactFile

# ---------------------------------------------------------------------
# Run-scoped artifact store
# ---------------------------------------------------------------------
# Layout:
#   <root>/<run_id>/<artifact name>/manifest.json
#   <root>/<run_id>/<artifact name>/files/<path relative to workspace>
#
# Each run owns its own namespace, so identically named artifacts of
# different runs never collide.
# ---------------------------------------------------------------------

MANIFEST = "manifest.json"
GLOB_CHARS = ("*", "?", "[")


def _hash_file_contents(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(1024 * 1024)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False)


def _safe_dirname(name: str) -> str:
    # artifact names are free text ("Litchi CLI"), keep them but drop separators
    cleaned = name.replace("/", "_").replace("\\", "_").strip()
    if not cleaned or cleaned in (".", ".."):
        raise ValueError(f"Invalid artifact name: {name!r}")
    return cleaned


def _stored_path(src: Path, base: Path) -> str:
    try:
        return src.resolve().relative_to(base).as_posix()
    except ValueError:
        # outside the workspace
        return src.name


def split_patterns(path: str) -> List[str]:
    """`path` may hold several patterns, one per line."""
    return [p.strip() for p in path.splitlines() if p.strip()]


def resolve_paths(workspace: Path, patterns: Iterable[str]) -> List[Path]:
    """
    Expand file, directory and glob patterns relative to `workspace`.

    Returns absolute paths of regular files, deduplicated and sorted.
    """
    workspace = workspace.resolve()
    found: set[Path] = set()
    for pattern in patterns:
        if any(c in pattern for c in GLOB_CHARS):
            candidates = list(workspace.glob(pattern))
        else:
            p = Path(pattern).expanduser()
            candidates = [p if p.is_absolute() else workspace / p]

        for c in candidates:
            if c.is_file():
                found.add(c.resolve())
            elif c.is_dir():
                found.update(f.resolve() for f in c.rglob("*") if f.is_file())
    return sorted(found)


class ArtifactStore:
    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _dir(self, run_id: str, name: str) -> Path:
        return self.root / run_id / _safe_dirname(name)

    def upload(self, run_id: str, name: str, files: List[Path], base: Path) -> Artifact:
        """
        Copy `files` into the run's namespace under `name` and write a manifest.

        Paths are stored relative to `base` when possible, otherwise by file name.
        Two files that would land on the same stored path are rejected.
        """
        if not files:
            raise ValueError(f"artifact {name!r} has no files")

        dest = self._dir(run_id, name)
        if dest.exists():
            raise FileExistsError(f"artifact {name!r} already uploaded for run {run_id}")

        base = base.resolve()
        planned: dict[str, Path] = {}
        for src in files:
            rel = _stored_path(src, base)
            if rel in planned:
                raise ValueError(
                    f"artifact {name!r}: {planned[rel]} and {src} would both be stored as {rel!r}"
                )
            planned[rel] = src

        entries: list[ArtifactFile] = []
        files_dir = dest / "files"
        try:
            for rel, src in planned.items():
                target = files_dir / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, target)
                entries.append(ArtifactFile(path=rel, size=target.stat().st_size, sha256=_hash_file_contents(target)))

            artifact = Artifact(name=name, run_id=run_id, files=tuple(entries), root=str(files_dir))
            (dest / MANIFEST).write_text(_json_dumps_stable(artifact.to_dict()), encoding="utf-8")
        except Exception:
            # no partial artifacts
            shutil.rmtree(dest, ignore_errors=True)
            raise
        return artifact

    def get(self, run_id: str, name: str) -> Artifact:
        dest = self._dir(run_id, name)
        manifest = dest / MANIFEST
        if not manifest.exists():
            raise KeyError(f"no artifact {name!r} for run {run_id}")
        return self._load(manifest)

    def list(self, run_id: str) -> List[Artifact]:
        run_dir = self.root / run_id
        if not run_dir.is_dir():
            return []
        return [self._load(m) for m in sorted(run_dir.glob(f"*/{MANIFEST}"))]

    def _load(self, manifest: Path) -> Artifact:
        data = json.loads(manifest.read_text(encoding="utf-8"))
        return Artifact(
            name=data["name"],
            run_id=data["run_id"],
            files=tuple(ArtifactFile(**f) for f in data["files"]),
            root=str(manifest.parent / "files"),
        )
