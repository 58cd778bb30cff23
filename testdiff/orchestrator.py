"""Coordinates change intake, graph building, traversal, and test selection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .changes import normalize_changed, partition_python
from .config import SelectorConfig
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from .errors import InvalidInputError
from .graph import GraphBuilder
from .impact import reverse_closure, seeds_for_changes
from .models import SelectionReport, TestSelection
from .parser import ImportParser
from .selector import select_tests

logger = logging.getLogger(__name__)


class ImpactAnalyzer:
    """Runs one stateless impacted-test selection over a project root."""

    def __init__(
        self,
        project_root: Path,
        config: Optional[SelectorConfig] = None,
        parser: Optional[ImportParser] = None,
    ) -> None:
        if not project_root.exists():
            raise InvalidInputError(f"Project root does not exist: {project_root}", str(project_root))
        if not project_root.is_dir():
            raise InvalidInputError(f"Project root is not a directory: {project_root}", str(project_root))
        self.project_root = project_root.resolve()
        self.config = config or SelectorConfig()
        self.parser = parser

    def run(self, changed_paths: Iterable[Path], allow_missing: bool = False) -> SelectionReport:
        """Select the tests impacted by *changed_paths* (absolute paths)."""
        log = DiagnosticLog()
        python_paths, other_paths = partition_python(changed_paths)
        dropped = [str(p) for p in other_paths]
        for path in dropped:
            log.add(Diagnostic(DiagnosticKind.NON_PYTHON_CHANGE, f"Ignoring non-Python change: {path}"))

        changed, _ = normalize_changed(self.project_root, python_paths, allow_missing=allow_missing)
        if not changed:
            logger.info("No changed Python files; nothing to select")
            return SelectionReport(
                root=self.project_root,
                changed=[],
                dropped=dropped,
                selection=TestSelection(),
                diagnostics=log,
                skipped=True,
            )

        builder = GraphBuilder(
            self.project_root,
            excluded_dirs=self.config.excluded_dirs,
            parser=self.parser,
            jobs=self.config.jobs,
            ignore_external_imports=self.config.ignore_external_imports,
        )
        graph, build_diagnostics = builder.build()
        log.extend(build_diagnostics)

        seeds, not_indexed = seeds_for_changes(graph, builder.resolver, changed)
        for module_id in not_indexed:
            log.add(Diagnostic(
                DiagnosticKind.MISSING_CHANGED_FILE,
                f"Changed file not indexed (using module `{builder.resolver.module_name(module_id)}`)",
                file=module_id,
            ))

        impact = reverse_closure(graph, seeds, self.config.distance_limit)
        if impact.truncated:
            log.add(Diagnostic(
                DiagnosticKind.DISTANCE_TRUNCATED,
                f"Traversal stopped at distance {self.config.distance_limit}; farther dependents were excluded",
            ))

        selection, selection_diagnostics = select_tests(
            graph, impact, changed, max_count=self.config.max_count, order=self.config.order,
        )
        log.extend(selection_diagnostics)

        stats = graph.stats()
        stats["impacted"] = len(impact)
        return SelectionReport(
            root=self.project_root,
            changed=changed,
            dropped=dropped,
            selection=selection,
            diagnostics=log,
            stats=stats,
        )
