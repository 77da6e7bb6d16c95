"""Main CLI application entry point."""

from __future__ import annotations

import typer

from relinfer.cli.commands import analyze, runs

app = typer.Typer(
    name="relinfer",
    help="Relationship inference - propose foreign keys and junction tables for imported tables.",
    no_args_is_help=True,
)

# Register commands
app.command()(analyze.analyze)
app.command()(runs.runs)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
