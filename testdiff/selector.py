"""Pick test modules out of the impacted set."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Set, Tuple

from .diagnostics import Diagnostic, DiagnosticKind
from .graph import DependencyGraph
from .impact import ImpactResult
from .models import ModuleId, SelectedTest, TestSelection


def is_test_file(path: str) -> bool:
    """``test_*.py`` or ``*_test.py``; helpers such as ``conftest.py`` are not tests."""
    name = PurePosixPath(path).name
    if not name.endswith(".py"):
        return False
    return name.startswith("test_") or name.endswith("_test.py")


def changed_leaves(modules: Iterable[ModuleId]) -> Set[str]:
    """Last dotted component of each module name (``pkg/foo.py`` -> ``foo``)."""
    leaves: Set[str] = set()
    for module_id in modules:
        path = PurePosixPath(module_id)
        leaf = path.parent.name if path.stem == "__init__" else path.stem
        if leaf:
            leaves.add(leaf)
    return leaves


def filename_match(path: str, leaves: Iterable[str]) -> int:
    """How strongly a test filename names one of the changed modules.

    0: ``test_<leaf>...`` or contains ``_<leaf>``; 1: contains ``<leaf>``; 2: unrelated.
    """
    name = PurePosixPath(path).name
    best = 2
    for leaf in leaves:
        if name.startswith(f"test_{leaf}") or f"_{leaf}" in name:
            return 0
        if leaf in name:
            best = 1
    return best


def select_tests(
    graph: DependencyGraph,
    impact: ImpactResult,
    changed: Iterable[ModuleId] = (),
    max_count: Optional[int] = None,
    order: str = "path",
) -> Tuple[TestSelection, List[Diagnostic]]:
    """Test-shaped modules among the impacted ones, deterministically ordered.

    ``order="path"`` sorts lexicographically; ``order="relevance"`` puts
    tests named after a changed module first, then closer tests, then path.
    """
    if order not in ("path", "relevance"):
        raise ValueError(f"unknown order {order!r}")
    if max_count is not None and max_count < 0:
        raise ValueError("max_count must be non-negative")

    leaves = changed_leaves(changed)
    tests = [
        SelectedTest(path=module_id, distance=distance, filename_match=filename_match(module_id, leaves))
        for module_id, distance in impact.distances.items()
        if module_id in graph and is_test_file(module_id)
    ]
    if order == "relevance":
        tests.sort(key=lambda t: (t.filename_match, t.distance, t.path))
    else:
        tests.sort(key=lambda t: t.path)

    selection = TestSelection(tests=tests, total=len(tests))
    diagnostics: List[Diagnostic] = []
    if max_count is not None and len(tests) > max_count:
        selection.tests = tests[:max_count]
        diagnostics.append(Diagnostic(
            DiagnosticKind.MAX_CAPPED,
            f"Selection capped at {max_count} of {len(tests)} impacted tests",
        ))
    return selection, diagnostics
