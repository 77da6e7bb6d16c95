"""Shared CLI utilities and constants."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table as RichTable

from relinfer.analysis.relationships.models import RelationshipProposal
from relinfer.core.logging import configure_logging

# Load .env file from current directory (RELINFER_* settings)
load_dotenv()

# Shared console instance
console = Console()

# Common type aliases for typer options
DuckDBPathArg = Annotated[
    Path | None,
    typer.Argument(
        help="DuckDB database file holding the imported tables (default: RELINFER_DUCKDB_PATH)",
        exists=True,
        dir_okay=False,
        file_okay=True,
        resolve_path=True,
    ),
]

OutputFileOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Write the JSON report to this file",
        dir_okay=False,
        resolve_path=True,
    ),
]

StoreOption = Annotated[
    str | None,
    typer.Option(
        "--store",
        help="SQLAlchemy URL of the report store",
    ),
]

JsonFlag = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output as JSON for scripting",
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v=INFO, -vv=DEBUG)",
    ),
]


def setup_logging(
    verbosity: int = 0, log_format: str = "console", default_level: str = "WARNING"
) -> None:
    """Configure structured logging based on verbosity level.

    Args:
        verbosity: 0=default_level, 1=INFO, 2+=DEBUG
        log_format: "console" for development, "json" for services
        default_level: Level used when no -v flag is given (RELINFER_LOG_LEVEL)
    """
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity >= 1:
        level = "INFO"
    else:
        level = default_level

    configure_logging(
        log_level=level,
        log_format=log_format,
        show_timestamps=verbosity >= 1,
        color=log_format == "console",
    )


def print_json(data: Any) -> None:
    """Print JSON without rich markup, highlighting or wrapping."""
    console.print(
        json.dumps(data, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def fail(message: str) -> typer.Exit:
    """Print an error and return the exit to raise."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    return typer.Exit(1)


def proposals_table(proposals: list[RelationshipProposal], title: str | None = None) -> RichTable:
    table = RichTable(show_header=True, header_style="bold", title=title)
    table.add_column("Source")
    table.add_column("Target")
    table.add_column("Type")
    table.add_column("Confidence", justify="right")
    table.add_column("Origin")
    table.add_column("Review")

    for p in proposals:
        color = {"high": "green", "medium": "yellow", "low": "red"}[p.confidence_bucket.value]
        table.add_row(
            f"{p.source_table}.{p.source_field}",
            f"{p.target_table}.{p.target_field}",
            p.relationship_type.value,
            f"[{color}]{p.confidence:.2f}[/{color}]",
            p.origin_evidence.value,
            "yes" if p.review_required else "",
        )
    return table
