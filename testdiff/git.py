"""Collect changed files from git."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import GitError

logger = logging.getLogger(__name__)


def run_git(cwd: Path, args: List[str]) -> str:
    """Run ``git <args>`` in *cwd* and return stdout."""
    command = " ".join(["git"] + args)
    logger.debug("Running %s in %s", command, cwd)
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
        )
    except FileNotFoundError:
        raise GitError("git executable not found; install git or pass --changed", command)
    if result.returncode != 0:
        raise GitError(
            f"{command} failed with status {result.returncode}: {result.stderr.strip()}",
            command,
        )
    return result.stdout


def _name_only(cwd: Path, args: List[str]) -> List[str]:
    return [line.strip() for line in run_git(cwd, args).splitlines() if line.strip()]


def repository_root(cwd: Path) -> Path:
    return Path(run_git(cwd, ["rev-parse", "--show-toplevel"]).strip())


def gather_git_changed(
    cwd: Path,
    staged: bool = False,
    worktree: bool = False,
    diff_ref: Optional[str] = None,
    merge_base: Optional[str] = None,
) -> List[Path]:
    """Changed files according to git, as sorted unique absolute paths.

    ``staged``: ``git diff --cached``. ``worktree``: staged and unstaged
    changes against HEAD. ``diff_ref``: ``<ref>..HEAD``. ``merge_base``:
    diff from ``git merge-base <ref> HEAD``. Sources combine: passing both
    ``diff_ref`` and ``merge_base`` runs both diffs and returns the union,
    it does not take the merge-base of ``diff_ref``.
    """
    if not (staged or worktree or diff_ref or merge_base):
        return []

    names: List[str] = []
    if staged:
        names.extend(_name_only(cwd, ["diff", "--name-only", "--cached"]))
    if worktree:
        names.extend(_name_only(cwd, ["diff", "--name-only", "HEAD"]))

    if diff_ref:
        names.extend(_name_only(cwd, ["diff", "--name-only", f"{diff_ref}..HEAD"]))
    if merge_base:
        fork_point = run_git(cwd, ["merge-base", merge_base, "HEAD"]).strip()
        names.extend(_name_only(cwd, ["diff", "--name-only", f"{fork_point}..HEAD"]))

    if not names:
        return []
    # git reports paths relative to the repository top level
    top = repository_root(cwd)
    unique = {path if path.is_absolute() else top / path for path in map(Path, names)}
    return sorted(unique)
