"""Map parsed imports onto the project's own modules.

Resolution only ever answers with files that were discovered by the scan;
anything else (stdlib, third-party, excluded directories) is Unresolved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Set

from .models import ImportRef, ModuleId

logger = logging.getLogger(__name__)

INIT_FILE = "__init__.py"


@dataclass
class Resolution:
    targets: List[ModuleId] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    def add(self, module_id: ModuleId) -> None:
        if module_id not in self.targets:
            self.targets.append(module_id)

    def __bool__(self) -> bool:
        return bool(self.targets)


class ModuleResolver:
    """Resolves :class:`ImportRef` objects against a fixed set of scanned modules."""

    def __init__(self, project_root: Path, module_ids: Iterable[ModuleId]) -> None:
        self.project_root = project_root
        self._known: Set[ModuleId] = set(module_ids)
        self._by_name: Dict[str, ModuleId] = {}
        self._top_levels: Set[str] = set()

        ordered = sorted(self._known)
        # plain modules claim a dotted name before package initialisers
        for mid in ordered:
            if PurePosixPath(mid).name != INIT_FILE:
                self._by_name.setdefault(self.module_name(mid), mid)
        for mid in ordered:
            if PurePosixPath(mid).name == INIT_FILE:
                self._by_name.setdefault(self.module_name(mid), mid)

        for mid in ordered:
            first = PurePosixPath(mid).parts[0]
            self._top_levels.add(first[:-3] if first.endswith(".py") else first)
        for name in self._by_name:
            if name:
                self._top_levels.add(name.split(".")[0])

    # ------------------------------------------------------------------
    # Module naming
    # ------------------------------------------------------------------

    def module_name(self, module_id: ModuleId) -> str:
        """Dotted import name of *module_id*.

        Walks up through directories carrying an ``__init__.py`` so that a
        file under ``src/pkg/mod.py`` is named ``pkg.mod``; files outside any
        package fall back to their root-relative path.
        """
        path = PurePosixPath(module_id)
        package_parts: List[str] = []
        current = path.parent
        while current.parts and str(current / INIT_FILE) in self._known:
            package_parts.append(current.name)
            current = current.parent
        package_parts.reverse()

        if path.name == INIT_FILE:
            if package_parts:
                return ".".join(package_parts)
            return ".".join(path.parent.parts)
        if package_parts:
            return ".".join(package_parts + [path.stem])
        return ".".join(list(path.parent.parts) + [path.stem])

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._known

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, ref: ImportRef) -> Resolution:
        """Resolve *ref*; a result without targets means Unresolved."""
        result = Resolution()
        anchor = self._anchor(ref)
        if anchor is None:
            return result
        base = anchor + (ref.module.split(".") if ref.module else [])
        names = ref.names if ref.is_from and ref.names != ("*",) else ()
        # a relative import anchored at the project root has an empty base
        if not base and not names:
            return result
        if ref.level == 0:
            floor = 1
        else:
            floor = len(anchor) + 1 if ref.module else len(anchor)

        if names:
            needs_base = False
            for name in names:
                hit = self.lookup(base + [name])
                if hit is None:
                    needs_base = True
                    result.missing.append(self._dotted(anchor, ref, [name]))
                else:
                    result.add(hit)
            if needs_base and base:
                hit = self._lookup_trimmed(base, floor)
                if hit is not None:
                    result.add(hit)
        else:
            hit = self._lookup_trimmed(base, floor)
            if hit is not None:
                result.add(hit)
            if hit is None or hit != self.lookup(base):
                result.missing.append(self._dotted(anchor, ref, []))
        return result

    def lookup(self, parts: List[str]) -> Optional[ModuleId]:
        """Find the module for dotted *parts*: ``a/b.py``, ``a/b/__init__.py``, then by name."""
        if not parts:
            return None
        rel = "/".join(parts)
        for candidate in (f"{rel}.py", f"{rel}/{INIT_FILE}"):
            if candidate in self._known:
                return candidate
        return self._by_name.get(".".join(parts))

    def _lookup_trimmed(self, parts: List[str], floor: int) -> Optional[ModuleId]:
        for end in range(len(parts), floor - 1, -1):
            hit = self.lookup(parts[:end])
            if hit is not None:
                return hit
        return None

    def _anchor(self, ref: ImportRef) -> Optional[List[str]]:
        if ref.level == 0:
            return []
        package = list(PurePosixPath(ref.file).parent.parts)
        ups = ref.level - 1
        if ups > len(package):
            logger.debug("Relative import %r in %s climbs above the project root", ref.text, ref.file)
            return None
        return package[: len(package) - ups]

    def is_project_import(self, ref: ImportRef) -> bool:
        """True for relative imports and imports rooted at a project top-level name."""
        if ref.level > 0:
            return True
        return ref.module.split(".")[0] in self._top_levels

    def _dotted(self, anchor: List[str], ref: ImportRef, extra: List[str]) -> str:
        """Absolute dotted name for an import, used to remember dangling targets."""
        tail = (ref.module.split(".") if ref.module else []) + extra
        if ref.level == 0:
            return ".".join(tail)
        init = "/".join(anchor + [INIT_FILE])
        if init in self._known:
            head = self.module_name(init)
            return ".".join(([head] if head else []) + tail)
        return ".".join(anchor + tail)
