"""testdiff: suggest impacted Python tests for a set of changed files."""

__version__ = "0.3.0"
