"""Reverse-dependency traversal: who is affected when these modules change."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Tuple

from .graph import DependencyGraph
from .models import ModuleId
from .resolver import INIT_FILE, ModuleResolver

logger = logging.getLogger(__name__)


@dataclass
class ImpactResult:
    """Minimum reverse-edge distance of every reached module."""

    distances: Dict[ModuleId, int] = field(default_factory=dict)
    truncated: bool = False

    def __contains__(self, module_id: object) -> bool:
        return module_id in self.distances

    def __len__(self) -> int:
        return len(self.distances)

    def modules(self) -> List[ModuleId]:
        return list(self.distances)


def reverse_closure(
    graph: DependencyGraph,
    seeds: Mapping[ModuleId, int],
    distance_limit: Optional[int] = None,
) -> ImpactResult:
    """Breadth-first walk over reverse edges starting from *seeds*.

    *seeds* maps a module to its starting distance (0 for changed modules).
    A module is kept only if its minimum distance is within
    *distance_limit*; each module is visited once, so import cycles
    terminate.
    """
    if distance_limit is not None and distance_limit < 0:
        raise ValueError("distance_limit must be non-negative")

    result = ImpactResult()
    queue: Deque[Tuple[ModuleId, int]] = deque()
    for module_id, distance in sorted(seeds.items(), key=lambda item: (item[1], item[0])):
        if distance_limit is not None and distance > distance_limit:
            result.truncated = True
            continue
        result.distances[module_id] = distance
        queue.append((module_id, distance))

    while queue:
        current, depth = queue.popleft()
        for dependent in graph.dependents(current):
            if dependent in result.distances:
                continue
            if distance_limit is not None and depth >= distance_limit:
                result.truncated = True
                continue
            result.distances[dependent] = depth + 1
            queue.append((dependent, depth + 1))

    logger.debug(
        "Reverse closure from %d seeds reached %d modules (truncated=%s)",
        len(seeds), len(result.distances), result.truncated,
    )
    return result


def seeds_for_changes(
    graph: DependencyGraph,
    resolver: ModuleResolver,
    changed: Iterable[ModuleId],
) -> Tuple[Dict[ModuleId, int], List[ModuleId]]:
    """Starting distances for *changed* modules, plus those missing from the graph.

    A changed file that is not in the graph (deleted, e.g. by ``git rm``) is
    seeded through the imports that pointed at it and no longer resolve,
    and through the nearest scanned package that encloses it.
    """
    seeds: Dict[ModuleId, int] = {}
    missing: List[ModuleId] = []

    def _seed(module_id: ModuleId, distance: int) -> None:
        if distance < seeds.get(module_id, distance + 1):
            seeds[module_id] = distance

    for module_id in changed:
        if module_id in graph:
            _seed(module_id, 0)
            continue
        missing.append(module_id)
        dotted = resolver.module_name(module_id)
        for importer in graph.dangling_importers(dotted):
            _seed(importer, 1)
        package = _enclosing_package(graph, module_id)
        if package is not None:
            _seed(package, 0)
        logger.debug("Changed module %s is not indexed; seeded as `%s`", module_id, dotted)
    return seeds, missing


def _enclosing_package(graph: DependencyGraph, module_id: ModuleId) -> Optional[ModuleId]:
    path = PurePosixPath(module_id)
    if path.name == INIT_FILE:
        path = path.parent
    for parent in path.parents:
        if not parent.parts:
            break
        init = (parent / INIT_FILE).as_posix()
        if init in graph:
            return init
    return None
