"""Tests for collecting changed files from git (subprocess is mocked)."""

import subprocess
from pathlib import Path

import pytest

from testdiff.errors import GitError
from testdiff.git import gather_git_changed, run_git

TOP = Path("/repo")


class FakeGit:
    """Records git invocations and answers from a canned table."""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []

    def __call__(self, cmd, **kwargs):
        args = tuple(cmd[1:])
        self.calls.append(args)
        if args not in self.answers:
            return subprocess.CompletedProcess(cmd, 128, stdout="", stderr=f"fatal: unexpected {args}")
        return subprocess.CompletedProcess(cmd, 0, stdout=self.answers[args], stderr="")


@pytest.fixture
def fake_git(monkeypatch):
    def _install(answers):
        fake = FakeGit(answers)
        monkeypatch.setattr(subprocess, "run", fake)
        return fake

    return _install


def test_no_sources_requested_runs_nothing(fake_git):
    fake = fake_git({})

    assert gather_git_changed(TOP) == []
    assert fake.calls == []


def test_staged_and_worktree_are_merged_and_sorted(fake_git):
    fake_git({
        ("diff", "--name-only", "--cached"): "pkg/b.py\nREADME.md\n",
        ("diff", "--name-only", "HEAD"): "pkg/a.py\npkg/b.py\n",
        ("rev-parse", "--show-toplevel"): "/repo\n",
    })

    changed = gather_git_changed(TOP, staged=True, worktree=True)

    assert changed == [TOP / "README.md", TOP / "pkg" / "a.py", TOP / "pkg" / "b.py"]


def test_merge_base_diff(fake_git):
    fake = fake_git({
        ("merge-base", "origin/main", "HEAD"): "abc123\n",
        ("diff", "--name-only", "abc123..HEAD"): "app/core.py\n",
        ("rev-parse", "--show-toplevel"): "/repo\n",
    })

    changed = gather_git_changed(TOP, merge_base="origin/main")

    assert changed == [TOP / "app" / "core.py"]
    assert ("merge-base", "origin/main", "HEAD") in fake.calls


def test_diff_ref(fake_git):
    fake_git({
        ("diff", "--name-only", "v1.0..HEAD"): "app/api.py\n",
        ("rev-parse", "--show-toplevel"): "/repo\n",
    })

    assert gather_git_changed(TOP, diff_ref="v1.0") == [TOP / "app" / "api.py"]


def test_empty_diff_skips_toplevel_lookup(fake_git):
    fake = fake_git({("diff", "--name-only", "--cached"): "\n"})

    assert gather_git_changed(TOP, staged=True) == []
    assert fake.calls == [("diff", "--name-only", "--cached")]


def test_failed_command_raises_git_error(fake_git):
    fake_git({})

    with pytest.raises(GitError) as excinfo:
        run_git(TOP, ["diff", "--name-only", "nope..HEAD"])

    assert "status 128" in excinfo.value.message
    assert excinfo.value.command == "git diff --name-only nope..HEAD"


def test_missing_git_executable(monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(subprocess, "run", _missing)

    with pytest.raises(GitError, match="git executable not found"):
        run_git(TOP, ["status"])


def test_diff_ref_and_merge_base_are_unioned(fake_git):
    fake = fake_git({
        ("diff", "--name-only", "v1.0..HEAD"): "app/api.py\n",
        ("merge-base", "origin/main", "HEAD"): "abc123\n",
        ("diff", "--name-only", "abc123..HEAD"): "app/core.py\napp/api.py\n",
        ("rev-parse", "--show-toplevel"): "/repo\n",
    })

    changed = gather_git_changed(TOP, diff_ref="v1.0", merge_base="origin/main")

    assert changed == [TOP / "app" / "api.py", TOP / "app" / "core.py"]
    assert ("merge-base", "v1.0", "HEAD") not in fake.calls
