"""CLI for relinfer.

Usage:
    relinfer analyze ./import.duckdb
    relinfer analyze ./import.duckdb --airtable-schema base.json --json
    relinfer runs --store sqlite:///runs.db

Environment:
    Loads .env file from current directory if present.
    RELINFER_* variables override settings (see relinfer.core.config).
"""

from relinfer.cli.main import app, main

__all__ = ["app", "main"]
