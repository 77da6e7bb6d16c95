"""CLI command implementations."""

from relinfer.cli.commands import analyze, runs

__all__ = [
    "analyze",
    "runs",
]
