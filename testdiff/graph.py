"""Whole-project module dependency graph.

Edge ``A -> B`` means "A imports B". The graph keeps forward and reverse
adjacency as insertion-ordered sets keyed by :data:`ModuleId`, so traversal
is plain dictionary lookups and cycles need nothing special.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .config import DEFAULT_EXCLUDED_DIRS, SUPPORTED_EXTENSIONS
from .diagnostics import Diagnostic, parse_error, unresolved_import
from .errors import InvalidInputError
from .models import ModuleId, ModuleScan
from .parser import ImportParser, create_parser, parse_source
from .resolver import ModuleResolver

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Forward/reverse import adjacency over the scanned modules.

    Populated once by :class:`GraphBuilder`; read-only afterwards.
    """

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root
        self._forward: Dict[ModuleId, Dict[ModuleId, None]] = {}
        self._reverse: Dict[ModuleId, Dict[ModuleId, None]] = {}
        self._dangling: Dict[str, Dict[ModuleId, None]] = {}
        self._unparsed: Dict[ModuleId, None] = {}

    # -- population (GraphBuilder only) ----------------------------------

    def add_module(self, module_id: ModuleId, parsed: bool = True) -> None:
        self._forward.setdefault(module_id, {})
        self._reverse.setdefault(module_id, {})
        if not parsed:
            self._unparsed[module_id] = None

    def add_edge(self, src: ModuleId, dst: ModuleId) -> None:
        if src == dst:
            return
        self._forward.setdefault(src, {})[dst] = None
        self._reverse.setdefault(dst, {})[src] = None
        self._forward.setdefault(dst, {})
        self._reverse.setdefault(src, {})

    def add_dangling(self, importer: ModuleId, dotted: str) -> None:
        if dotted:
            self._dangling.setdefault(dotted, {})[importer] = None

    # -- queries ----------------------------------------------------------

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._forward

    def __len__(self) -> int:
        return len(self._forward)

    def modules(self) -> Iterator[ModuleId]:
        return iter(self._forward)

    def dependencies(self, module_id: ModuleId) -> Tuple[ModuleId, ...]:
        """Modules *module_id* imports."""
        return tuple(self._forward.get(module_id, ()))

    def dependents(self, module_id: ModuleId) -> Tuple[ModuleId, ...]:
        """Modules importing *module_id*."""
        return tuple(self._reverse.get(module_id, ()))

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._forward.values())

    def is_parsed(self, module_id: ModuleId) -> bool:
        return module_id in self._forward and module_id not in self._unparsed

    def dangling_importers(self, dotted: str) -> List[ModuleId]:
        """Importers whose unresolved target is *dotted* or lies beneath it."""
        found: Dict[ModuleId, None] = {}
        prefix = dotted + "."
        for target, importers in self._dangling.items():
            if target == dotted or target.startswith(prefix):
                found.update(importers)
        return list(found)

    def stats(self) -> Dict[str, int]:
        return {
            "modules": len(self._forward),
            "edges": self.edge_count(),
            "unparsed": len(self._unparsed),
        }


# ===================================================================
# Discovery
# ===================================================================

def discover_modules(
    project_root: Path,
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> List[ModuleId]:
    """Every Python file under *project_root*, sorted, minus excluded directories.

    Exclusion is an exact match on any directory segment of the
    root-relative path.
    """
    excluded: FrozenSet[str] = frozenset(excluded_dirs)
    found: List[ModuleId] = []
    for dirpath, dirnames, filenames in os.walk(project_root):
        dirnames[:] = [d for d in dirnames if d not in excluded]
        rel_dir = Path(dirpath).relative_to(project_root)
        for filename in filenames:
            if Path(filename).suffix in SUPPORTED_EXTENSIONS:
                found.append((rel_dir / filename).as_posix())
    return sorted(found)


# ===================================================================
# Per-file scan
# ===================================================================

def scan_module(
    project_root: Path,
    module_id: ModuleId,
    parser: ImportParser,
    resolver: ModuleResolver,
    ignore_external_imports: bool = False,
) -> ModuleScan:
    """Parse one module and resolve its imports; never raises for bad input files."""
    scan = ModuleScan(module_id=module_id)
    try:
        source = (project_root / module_id).read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        logger.debug("Could not read %s: %s", module_id, exc)
        scan.parsed = False
        scan.diagnostics.append(parse_error(module_id, f"could not read file ({exc.strerror or exc})"))
        return scan

    refs, error = parse_source(parser, source, module_id)
    if error is not None:
        scan.parsed = False
        scan.diagnostics.append(parse_error(module_id, error.message, error.line))
        return scan

    for ref in refs:
        resolution = resolver.resolve(ref)
        for target in resolution.targets:
            if target != module_id and target not in scan.edges:
                scan.edges.append(target)
        scan.dangling.extend(resolution.missing)
        if resolution:
            continue
        if ignore_external_imports and not resolver.is_project_import(ref):
            continue
        scan.diagnostics.append(unresolved_import(module_id, ref.line, ref.text))
    return scan


# ===================================================================
# Builder
# ===================================================================

class GraphBuilder:
    """Scans a project tree and assembles its :class:`DependencyGraph`.

    With ``jobs > 1`` files are parsed on a thread pool; results are merged
    in discovery order, so the graph and diagnostics are identical to a
    serial build.
    """

    def __init__(
        self,
        project_root: Path,
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        parser: Optional[ImportParser] = None,
        jobs: int = 1,
        ignore_external_imports: bool = False,
    ) -> None:
        if not project_root.is_dir():
            raise InvalidInputError(f"Project root is not a directory: {project_root}", str(project_root))
        self.project_root = project_root
        self.excluded_dirs = frozenset(excluded_dirs)
        self.parser = parser or create_parser()
        self.jobs = max(jobs, 1)
        self.ignore_external_imports = ignore_external_imports
        self.resolver: Optional[ModuleResolver] = None

    def build(self) -> Tuple[DependencyGraph, List[Diagnostic]]:
        module_ids = discover_modules(self.project_root, self.excluded_dirs)
        resolver = ModuleResolver(self.project_root, module_ids)
        logger.debug("Scanning %d modules under %s (jobs=%d)", len(module_ids), self.project_root, self.jobs)

        def _scan(module_id: ModuleId) -> ModuleScan:
            return scan_module(
                self.project_root, module_id, self.parser, resolver, self.ignore_external_imports,
            )

        if self.jobs > 1 and len(module_ids) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                scans = list(executor.map(_scan, module_ids))
        else:
            scans = [_scan(module_id) for module_id in module_ids]

        graph = DependencyGraph(self.project_root)
        diagnostics: List[Diagnostic] = []
        for scan in scans:
            graph.add_module(scan.module_id, parsed=scan.parsed)
        for scan in scans:
            for target in scan.edges:
                graph.add_edge(scan.module_id, target)
            for dotted in scan.dangling:
                graph.add_dangling(scan.module_id, dotted)
            diagnostics.extend(scan.diagnostics)

        self.resolver = resolver
        logger.debug("Graph built: %s", graph.stats())
        return graph, diagnostics
