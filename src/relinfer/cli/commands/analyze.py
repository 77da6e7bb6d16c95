"""Analyze command - infer relationships in a DuckDB database."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from sqlalchemy.orm import Session

from relinfer.analysis.relationships import RelationshipInferenceEngine
from relinfer.analysis.relationships.models import RelationshipProposalReport
from relinfer.cli.common import (
    DuckDBPathArg,
    JsonFlag,
    OutputFileOption,
    StoreOption,
    VerboseOption,
    console,
    fail,
    print_json,
    proposals_table,
    setup_logging,
)
from relinfer.core.config import get_settings, load_inference_config
from relinfer.core.errors import RelinferError
from relinfer.core.progress import LoggingProgressSink
from relinfer.sources import DuckDBDataSource, SchemaMetadataSource
from relinfer.sources.schema import from_airtable_schema, load_link_descriptors
from relinfer.storage import create_store_engine, init_database
from relinfer.storage.repository import save_report

LinksOption = Annotated[
    Path | None,
    typer.Option(
        "--links",
        help="YAML/JSON file with declared link descriptors",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]

AirtableSchemaOption = Annotated[
    Path | None,
    typer.Option(
        "--airtable-schema",
        help="Airtable base schema export (JSON) to read linked-record fields from",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        help="relationships.yaml to use instead of the default",
        exists=True,
        resolve_path=True,
    ),
]

WorkersOption = Annotated[
    int | None,
    typer.Option("--workers", "-w", min=1, help="Concurrent candidate checks"),
]

DialectOption = Annotated[
    str | None,
    typer.Option("--dialect", help="DDL dialect: postgresql or duckdb"),
]

SchemaOption = Annotated[
    str,
    typer.Option("--schema", help="DuckDB schema holding the tables"),
]


def analyze(
    duckdb_path: DuckDBPathArg = None,
    links: LinksOption = None,
    airtable_schema: AirtableSchemaOption = None,
    config: ConfigOption = None,
    workers: WorkersOption = None,
    dialect: DialectOption = None,
    schema: SchemaOption = "main",
    output: OutputFileOption = None,
    store: StoreOption = None,
    json_output: JsonFlag = False,
    verbose: VerboseOption = 0,
) -> None:
    """Infer foreign keys and junction tables between the tables of a DuckDB file.

    Examples:

        relinfer analyze ./import.duckdb

        relinfer analyze ./import.duckdb --airtable-schema base.json --dialect duckdb

        relinfer analyze ./import.duckdb --json -o report.json --store sqlite:///runs.db
    """
    settings = get_settings()
    setup_logging(verbose, settings.log_format, settings.log_level)

    duckdb_path = duckdb_path or settings.duckdb_path
    if duckdb_path is None:
        raise fail("No DuckDB database given (pass a path or set RELINFER_DUCKDB_PATH)")
    if not duckdb_path.is_file():
        raise fail(f"DuckDB database does not exist: {duckdb_path}")

    if links is not None and airtable_schema is not None:
        raise fail("--links and --airtable-schema are mutually exclusive")

    try:
        inference_config = load_inference_config(config).with_overrides(
            max_workers=workers or settings.max_workers,
            ddl_dialect=dialect,
        )

        metadata: SchemaMetadataSource | None = None
        if links is not None:
            metadata = load_link_descriptors(links)
        elif airtable_schema is not None:
            metadata = from_airtable_schema(airtable_schema)

        with DuckDBDataSource(
            path=duckdb_path,
            schema=schema,
            identifier_columns=inference_config.identifier_columns,
        ) as source:
            engine = RelationshipInferenceEngine(
                source,
                metadata=metadata,
                config=inference_config,
                progress=LoggingProgressSink("debug"),
            )
            report = engine.analyze()
    except RelinferError as e:
        raise fail(str(e)) from e

    data = report.to_json_dict()

    if output is not None:
        output.write_text(json.dumps(data, indent=2))

    if store is not None:
        _store(report, store)

    if json_output:
        print_json(data)
    else:
        _print_report(report, output)


def _store(report: RelationshipProposalReport, url: str) -> None:
    db = create_store_engine(url)
    try:
        init_database(db)
        with Session(db) as session:
            save_report(session, report)
            session.commit()
    finally:
        db.dispose()


def _print_report(report: RelationshipProposalReport, output: Path | None) -> None:
    summary = report.summary
    console.print(
        f"\n[bold]Relationship analysis[/bold] {report.analysis_id} - {report.source}\n"
    )
    console.print(
        f"Tables: {summary.tables_analyzed}  Candidates: {summary.total_candidates}  "
        f"Accepted: [green]{summary.accepted}[/green]  Rejected: {summary.rejected}  "
        f"Errors: [red]{summary.errors}[/red]  ({summary.duration_seconds:.2f}s)"
    )

    if report.relationships:
        console.print(proposals_table(report.relationships))
    else:
        console.print("[yellow]No relationships found[/yellow]")

    if report.issues:
        console.print("\n[bold]Issues:[/bold]")
        for issue in report.issues:
            where = ".".join(p for p in (issue.table, issue.column) if p)
            console.print(f"  [red]{issue.kind.value}[/red] {escape(where)}: {escape(issue.message)}")

    if report.cancelled:
        console.print("[yellow]Analysis was cancelled; results are partial[/yellow]")
    if output is not None:
        console.print(f"\nReport written to {output}")
