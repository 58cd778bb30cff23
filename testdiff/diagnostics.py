"""Diagnostics collected while building the graph and selecting tests.

Diagnostics never abort a run. They are reported on the side channel
(stderr) so the primary test list on stdout stays machine-parseable, and
their presence drives the ``--warn-as-error`` exit code independently of
the selection itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional

from rich.console import Console
from rich.markup import escape


class DiagnosticKind(Enum):
    PARSE_ERROR = "parse-error"
    UNRESOLVED_IMPORT = "unresolved-import"
    MISSING_CHANGED_FILE = "missing-changed-file"
    DISTANCE_TRUNCATED = "distance-truncated"
    MAX_CAPPED = "max-capped"
    NON_PYTHON_CHANGE = "non-python-change"


WARNING_KINDS = frozenset({
    DiagnosticKind.PARSE_ERROR,
    DiagnosticKind.UNRESOLVED_IMPORT,
    DiagnosticKind.MISSING_CHANGED_FILE,
})


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def severity(self) -> str:
        return "warning" if self.kind in WARNING_KINDS else "info"

    @property
    def location(self) -> str:
        if self.file is None:
            return ""
        if self.line is None:
            return self.file
        return f"{self.file}:{self.line}"

    def __str__(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message


def unresolved_import(file: str, line: int, text: str) -> Diagnostic:
    return Diagnostic(
        DiagnosticKind.UNRESOLVED_IMPORT,
        f"Unresolved import `{text}`",
        file=file,
        line=line,
    )


def parse_error(file: str, reason: str, line: Optional[int] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.PARSE_ERROR, f"Failed to parse: {reason}", file=file, line=line)


class DiagnosticLog:
    """Append-only, insertion-ordered collection of diagnostics."""

    def __init__(self, items: Optional[Iterable[Diagnostic]] = None) -> None:
        self._items: List[Diagnostic] = list(items or [])

    def add(self, diagnostic: Diagnostic) -> None:
        self._items.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._items.extend(diagnostics)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self._items if d.kind is kind]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == "warning"]

    @property
    def notices(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == "info"]

    @property
    def has_warnings(self) -> bool:
        return any(d.severity == "warning" for d in self._items)

    def exit_code(self, warn_as_error: bool) -> int:
        """Exit status implied by the diagnostics alone."""
        if warn_as_error and self.has_warnings:
            return 1
        return 0


def render_diagnostics(
    console: Console,
    diagnostics: Iterable[Diagnostic],
    include_unresolved: bool = True,
) -> int:
    """Print diagnostics to *console*; return how many were printed."""
    printed = 0
    for diag in diagnostics:
        if not include_unresolved and diag.kind is DiagnosticKind.UNRESOLVED_IMPORT:
            continue
        label = "[yellow]Warning[/yellow]" if diag.severity == "warning" else "[cyan]Info[/cyan]"
        console.print(f"{label}: {escape(str(diag))}")
        printed += 1
    return printed
