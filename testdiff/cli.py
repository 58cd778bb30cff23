"""Typer-based CLI: print the tests impacted by a set of changed files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .changes import absolutize, choose_root, partition_python, split_changed_args
from .config import ORDERS, load_config
from .diagnostics import DiagnosticKind, render_diagnostics
from .errors import GitError, InvalidInputError, TestDiffError
from .git import gather_git_changed
from .junit import format_junit
from .models import SelectionReport
from .orchestrator import ImpactAnalyzer

app = typer.Typer(
    help="Suggest impacted Python tests for changed files.",
    rich_markup_mode="rich",
    add_completion=False,
)

# Diagnostics go to stderr; stdout carries only the test list.
console = Console(stderr=True, soft_wrap=True, highlight=False)

EXIT_WARNINGS = 1
EXIT_INVALID = 2


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"testdiff v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: TestDiffError) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(exc.message)}")
    raise typer.Exit(code=EXIT_INVALID)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    changed: Optional[List[str]] = typer.Option(
        None, "--changed", "-c",
        help="Changed files, comma separated or repeated (relative to CWD or absolute).",
    ),
    git_diff: Optional[str] = typer.Option(None, "--git-diff", help="Diff against this ref (e.g. origin/main)."),
    git_staged: bool = typer.Option(False, "--git-staged", help="Use staged changes (git diff --cached)."),
    git_merge_base: Optional[str] = typer.Option(
        None, "--git-merge-base", help="Diff from the merge-base with this ref (combined with --git-diff as a union).",
    ),
    git_worktree: bool = typer.Option(False, "--git-worktree", help="Use staged and unstaged changes against HEAD."),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root to scan (default: detected)."),
    max_count: Optional[int] = typer.Option(None, "--max", min=0, help="Maximum number of test files to output."),
    distance_limit: Optional[int] = typer.Option(
        None, "--distance-limit", min=0,
        help="Limit graph distance from changed modules (0 = only the changed files themselves).",
    ),
    order: Optional[str] = typer.Option(None, "--order", help="Result order: path (default) or relevance."),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", min=1, help="Parse files on this many threads."),
    ignore_external: Optional[bool] = typer.Option(
        None, "--ignore-external/--report-external",
        help="Do not report unresolved imports of packages outside the project.",
    ),
    allow_missing: bool = typer.Option(
        False, "--allow-missing", help="Treat changed files missing on disk as deleted (implied by git options).",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print a selection report to stderr instead of the list."),
    warn_as_error: bool = typer.Option(False, "--warn-as-error", help="Exit non-zero when any warning was emitted."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress warnings and notices."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report every diagnostic and enable debug logging."),
    version: Optional[bool] = typer.Option(
        None, "--version", help="Show version and exit.", callback=version_callback, is_eager=True,
    ),
):
    """Print the test files impacted by the changed files, one per line."""
    if ctx.invoked_subcommand is not None:
        return
    _configure_logging(verbose)

    if order is not None and order not in ORDERS:
        raise typer.BadParameter(f"must be one of: {', '.join(ORDERS)}", param_hint="--order")

    cwd = Path.cwd()
    changed_abs = [absolutize(raw, cwd) for raw in split_changed_args(changed or [])]
    if git_staged or git_worktree or git_diff or git_merge_base:
        try:
            changed_abs.extend(gather_git_changed(
                cwd, staged=git_staged, worktree=git_worktree, diff_ref=git_diff, merge_base=git_merge_base,
            ))
        except GitError as exc:
            _fail(exc)
        allow_missing = True

    if not changed_abs:
        if not quiet:
            console.print("Info: no changed files given; skipping.")
        raise typer.Exit(code=0)

    python_paths, _ = partition_python(changed_abs)
    project_root = choose_root(root, python_paths or changed_abs, cwd)
    config = load_config(project_root).merged(
        max_count=max_count,
        distance_limit=distance_limit,
        order=order,
        jobs=jobs,
        ignore_external_imports=ignore_external,
    )

    try:
        report = ImpactAnalyzer(project_root, config).run(changed_abs, allow_missing=allow_missing)
    except InvalidInputError as exc:
        _fail(exc)

    if report.skipped:
        if not quiet:
            render_diagnostics(console, report.diagnostics)
            console.print("Info: no changed Python files detected; skipping.")
        raise typer.Exit(code=0)

    if dry_run:
        _print_dry_run(report, quiet)
    else:
        for path in report.selection.paths:
            typer.echo(path)
        if not quiet:
            _print_diagnostics(report, verbose)

    code = report.diagnostics.exit_code(warn_as_error)
    if code:
        warnings = report.diagnostics.warnings
        if quiet:
            raise typer.Exit(code=EXIT_WARNINGS)
        console.print(
            f"[red]Error:[/red] warnings treated as errors ({len(warnings)} warnings). "
            f"First: {escape(str(warnings[0]))}"
        )
        raise typer.Exit(code=EXIT_WARNINGS)


def _print_diagnostics(report: SelectionReport, verbose: bool) -> None:
    if verbose:
        render_diagnostics(console, report.diagnostics)
        return
    shown = [
        d for d in report.diagnostics
        if d.severity == "warning" or d.kind is DiagnosticKind.NON_PYTHON_CHANGE
    ]
    render_diagnostics(console, shown, include_unresolved=False)


def _print_dry_run(report: SelectionReport, quiet: bool) -> None:
    selection = report.selection
    console.print(f"Root: {escape(str(report.root))}")
    console.print(f"Changed files ({len(report.changed)}):")
    for module_id in report.changed:
        console.print(f"  - {escape(module_id)}")
    if report.dropped:
        console.print(f"Dropped non-Python files ({len(report.dropped)}):")
        for path in report.dropped:
            console.print(f"  - {escape(path)}")
    if report.stats:
        console.print(
            f"Graph: {report.stats.get('modules', 0)} modules, {report.stats.get('edges', 0)} edges, "
            f"{report.stats.get('impacted', 0)} impacted"
        )
    console.print(f"\nSelected tests ({len(selection.tests)} of {selection.total}, {selection.excluded} excluded):")
    for test in selection.tests:
        console.print(f"  - {escape(test.path)} (distance={test.distance}, filename_match={test.filename_match})")
    if not quiet and report.diagnostics:
        console.print(f"\nDiagnostics ({len(report.diagnostics)}):")
        render_diagnostics(console, report.diagnostics)


@app.command("format")
def format_report(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="pytest JUnit XML report (--junitxml)."),
    include_skipped: bool = typer.Option(False, "--include-skipped", help="Emit warnings for skipped tests."),
):
    """Format a pytest JUnit XML report as GitHub Actions annotations."""
    try:
        lines = format_junit(path, include_skipped=include_skipped)
    except TestDiffError as exc:
        _fail(exc)
    for line in lines:
        typer.echo(line)
    if not lines:
        console.print(f"No failures, errors, or skipped tests found in {escape(str(path))}")


if __name__ == "__main__":
    app()
