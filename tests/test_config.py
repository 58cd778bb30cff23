"""Tests for configuration defaults and pyproject loading."""

from pathlib import Path

from testdiff.config import DEFAULT_EXCLUDED_DIRS, SelectorConfig, load_config, load_pyproject_section


def test_defaults(monkeypatch):
    monkeypatch.delenv("TESTDIFF_JOBS", raising=False)
    config = SelectorConfig()

    assert config.max_count is None
    assert config.distance_limit is None
    assert config.jobs == 1
    assert config.order == "path"
    assert ".git" in config.excluded_dirs
    assert "node_modules" in config.excluded_dirs


def test_jobs_from_environment(monkeypatch):
    monkeypatch.setenv("TESTDIFF_JOBS", "4")
    assert SelectorConfig().jobs == 4

    monkeypatch.setenv("TESTDIFF_JOBS", "many")
    assert SelectorConfig().jobs == 1


def test_merged_skips_none():
    config = SelectorConfig(max_count=5).merged(max_count=None, distance_limit=2)

    assert config.max_count == 5
    assert config.distance_limit == 2


def test_missing_pyproject_gives_defaults(temp_dir: Path):
    assert load_pyproject_section(temp_dir) == {}
    assert load_config(temp_dir).excluded_dirs == DEFAULT_EXCLUDED_DIRS


def test_loads_tool_section(make_project):
    root = make_project({
        "pyproject.toml": """\
            [tool.testdiff]
            exclude = ["vendor"]
            max = 10
            distance-limit = 3
            jobs = 2
            ignore-external-imports = true
            order = "relevance"
        """,
    })

    config = load_config(root)

    assert "vendor" in config.excluded_dirs
    assert ".git" in config.excluded_dirs
    assert config.max_count == 10
    assert config.distance_limit == 3
    assert config.jobs == 2
    assert config.ignore_external_imports is True
    assert config.order == "relevance"


def test_invalid_values_fall_back(make_project):
    root = make_project({
        "pyproject.toml": """\
            [tool.testdiff]
            max = -1
            distance-limit = "far"
            order = "random"
            extend-exclude = "vendor"
        """,
    })

    config = load_config(root)

    assert config.max_count is None
    assert config.distance_limit is None
    assert config.order == "path"
    assert "vendor" not in config.excluded_dirs


def test_broken_toml_is_ignored(make_project):
    root = make_project({"pyproject.toml": "[tool.testdiff\nmax = 1\n"})

    assert load_pyproject_section(root) == {}
    assert load_config(root).max_count is None
