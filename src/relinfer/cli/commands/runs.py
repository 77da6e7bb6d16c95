"""Runs command - list and show persisted analyses."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table as RichTable
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from relinfer.cli.common import JsonFlag, StoreOption, console, fail, print_json, proposals_table
from relinfer.core.config import get_settings
from relinfer.storage import create_store_engine, init_database
from relinfer.storage.repository import list_runs, load_report

AnalysisIdArg = Annotated[
    str | None,
    typer.Argument(help="Show the relationships of this analysis"),
]

LimitOption = Annotated[
    int,
    typer.Option("--limit", "-n", min=1, help="Number of runs to list"),
]


def runs(
    analysis_id: AnalysisIdArg = None,
    store: StoreOption = None,
    limit: LimitOption = 20,
    json_output: JsonFlag = False,
) -> None:
    """List stored analyses, or show one of them.

    Examples:

        relinfer runs --store sqlite:///runs.db

        relinfer runs 3f2c... --store sqlite:///runs.db --json
    """
    url = store or get_settings().database_url
    db = create_store_engine(url)
    try:
        init_database(db)
        with Session(db) as session:
            if analysis_id is None:
                _list(session, limit, json_output)
            else:
                _show(session, analysis_id, json_output)
    except SQLAlchemyError as e:
        raise fail(f"Report store {url} unavailable: {e}") from e
    finally:
        db.dispose()


def _list(session: Session, limit: int, json_output: bool) -> None:
    stored = list_runs(session, limit=limit)

    if json_output:
        print_json(
            [
                {
                    "analysisId": r.analysis_id,
                    "createdAt": r.created_at.isoformat(),
                    "source": r.source,
                    "totalCandidates": r.total_candidates,
                    "accepted": r.accepted,
                    "errors": r.errors,
                    "cancelled": r.cancelled,
                }
                for r in stored
            ]
        )
        return

    if not stored:
        console.print("[yellow]No stored analyses[/yellow]")
        return

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("Analysis")
    table.add_column("Created")
    table.add_column("Source")
    table.add_column("Candidates", justify="right")
    table.add_column("Accepted", justify="right")
    table.add_column("Errors", justify="right")
    for r in stored:
        table.add_row(
            r.analysis_id,
            r.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            r.source,
            str(r.total_candidates),
            str(r.accepted),
            str(r.errors),
        )
    console.print(table)


def _show(session: Session, analysis_id: str, json_output: bool) -> None:
    report = load_report(session, analysis_id)
    if report is None:
        raise fail(f"No stored analysis {analysis_id}")

    if json_output:
        print_json(report.to_json_dict())
        return

    console.print(f"\n[bold]Analysis[/bold] {report.analysis_id} - {report.source}\n")
    console.print(proposals_table(report.relationships))
