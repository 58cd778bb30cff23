"""Configuration defaults and ``[tool.testdiff]`` loading from pyproject.toml."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import toml

logger = logging.getLogger(__name__)

PYPROJECT_FILE = "pyproject.toml"
SUPPORTED_EXTENSIONS = {".py"}
ORDERS = ("path", "relevance")

# Directory names skipped while walking the project (exact segment match).
DEFAULT_EXCLUDED_DIRS: FrozenSet[str] = frozenset({
    ".git", ".hg", ".svn",
    ".venv", "venv", "__pycache__", "node_modules",
    ".tox", ".nox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "build", "dist", "target", ".eggs", "site-packages", "htmlcov",
})


def _default_jobs() -> int:
    raw = os.environ.get("TESTDIFF_JOBS", "")
    try:
        return max(int(raw), 1) if raw else 1
    except ValueError:
        logger.warning("Ignoring invalid TESTDIFF_JOBS=%r", raw)
        return 1


@dataclass(frozen=True)
class SelectorConfig:
    excluded_dirs: FrozenSet[str] = DEFAULT_EXCLUDED_DIRS
    max_count: Optional[int] = None
    distance_limit: Optional[int] = None
    jobs: int = field(default_factory=_default_jobs)
    ignore_external_imports: bool = False
    order: str = "path"

    def merged(self, **overrides: Any) -> "SelectorConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)


def load_pyproject_section(root: Path) -> Dict[str, Any]:
    """Return the ``[tool.testdiff]`` table of ``root/pyproject.toml`` (or {})."""
    pyproject = root / PYPROJECT_FILE
    if not pyproject.is_file():
        return {}
    try:
        with open(pyproject, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", pyproject, exc)
        return {}
    section = data.get("tool", {}).get("testdiff", {})
    if not isinstance(section, dict):
        logger.warning("[tool.testdiff] in %s is not a table; ignoring it", pyproject)
        return {}
    return section


def _optional_count(section: Dict[str, Any], key: str) -> Optional[int]:
    value = section.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        logger.warning("[tool.testdiff] %s must be a non-negative integer, got %r", key, value)
        return None
    return value


def load_config(root: Path, base: Optional[SelectorConfig] = None) -> SelectorConfig:
    """Build a :class:`SelectorConfig` from defaults plus the project's pyproject.toml."""
    config = base or SelectorConfig()
    section = load_pyproject_section(root)
    if not section:
        return config

    excluded = set(config.excluded_dirs)
    for key in ("exclude", "extend-exclude"):
        extra = section.get(key, [])
        if isinstance(extra, list) and all(isinstance(x, str) for x in extra):
            excluded.update(extra)
        else:
            logger.warning("[tool.testdiff] %s must be a list of directory names", key)

    order = section.get("order")
    if order is not None and order not in ORDERS:
        logger.warning("[tool.testdiff] order must be one of %s, got %r", ", ".join(ORDERS), order)
        order = None

    ignore_external = section.get("ignore-external-imports")
    if ignore_external is not None and not isinstance(ignore_external, bool):
        logger.warning("[tool.testdiff] ignore-external-imports must be a boolean")
        ignore_external = None

    jobs = _optional_count(section, "jobs")
    return config.merged(
        excluded_dirs=frozenset(excluded),
        max_count=_optional_count(section, "max"),
        distance_limit=_optional_count(section, "distance-limit"),
        jobs=max(jobs, 1) if jobs is not None else None,
        ignore_external_imports=ignore_external,
        order=order,
    )
