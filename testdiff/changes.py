"""Turn user- or git-supplied changed paths into project module ids."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import PYPROJECT_FILE, SUPPORTED_EXTENSIONS
from .errors import InvalidInputError
from .models import ModuleId

logger = logging.getLogger(__name__)

ROOT_MARKERS = (PYPROJECT_FILE, ".git")


def split_changed_args(values: Iterable[str]) -> List[str]:
    """Flatten repeated, comma-separated ``--changed`` values."""
    out: List[str] = []
    for value in values:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return out


def absolutize(raw: str, cwd: Path) -> Path:
    """Expand ``~`` and anchor at *cwd*; canonicalize when the path exists."""
    path = Path(os.path.expanduser(raw))
    if not path.is_absolute():
        path = cwd / path
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return Path(os.path.normpath(path))


def is_python_path(path: Path) -> bool:
    return path.suffix in SUPPORTED_EXTENSIONS


def partition_python(paths: Iterable[Path]) -> Tuple[List[Path], List[Path]]:
    """Split *paths* into (Python sources, everything else), keeping order."""
    python: List[Path] = []
    other: List[Path] = []
    for path in paths:
        (python if is_python_path(path) else other).append(path)
    return python, other


def _dir_of(path: Path) -> Path:
    return path if path.is_dir() else path.parent


def choose_root(explicit: Optional[Path], changed: Sequence[Path], cwd: Path) -> Path:
    """Project root to scan.

    1. ``explicit`` wins.
    2. For each changed file, the nearest ancestor holding ``pyproject.toml``
       or ``.git``; the one reached in the fewest hops wins.
    3. The common ancestor of the changed files' directories.
    4. ``cwd``.
    """
    if explicit is not None:
        root = explicit.parent if explicit.is_file() else explicit
        if not root.is_absolute():
            root = cwd / root
        return root.resolve()
    else:
        best: Optional[Tuple[int, Path]] = None
        for path in changed:
            current = _dir_of(path)
            depth = 0
            while True:
                if any((current / marker).exists() for marker in ROOT_MARKERS):
                    if best is None or depth < best[0]:
                        best = (depth, current)
                    break
                if current.parent == current:
                    break
                current = current.parent
                depth += 1
        if best is not None:
            root = best[1]
        else:
            root = common_ancestor([p.parent for p in changed]) or cwd

    if root.parent == root:
        # never scan the filesystem root
        root = cwd
    return root.resolve()


def common_ancestor(paths: Sequence[Path]) -> Optional[Path]:
    if not paths:
        return None
    try:
        common = Path(os.path.commonpath([str(p) for p in paths]))
    except ValueError:
        return None
    if common.parent == common:
        return None
    return common


def normalize_changed(
    root: Path,
    paths: Iterable[Path],
    allow_missing: bool = False,
) -> Tuple[List[ModuleId], List[ModuleId]]:
    """ModuleIds for *paths*, de-duplicated in order, plus the subset missing on disk.

    A path outside *root* is always invalid; a missing path is invalid
    unless *allow_missing* (git change sets include deletions).
    """
    root = root.resolve()
    seen: List[ModuleId] = []
    missing: List[ModuleId] = []
    for path in paths:
        try:
            rel = path.relative_to(root)
        except ValueError:
            raise InvalidInputError(f"Changed file is outside the project root {root}: {path}", str(path))
        module_id = rel.as_posix()
        if not path.exists():
            if not allow_missing:
                raise InvalidInputError(f"Changed file does not exist: {path}", str(path))
            if module_id not in missing:
                missing.append(module_id)
        if module_id not in seen:
            seen.append(module_id)
    return seen, missing
