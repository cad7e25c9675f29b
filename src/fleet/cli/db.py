"""
CLI group ``fleet-core db``: database setup.
"""

from __future__ import annotations

import typer

from fleet.cli.utils import console, load_settings, open_database

app = typer.Typer(no_args_is_help=True)


@app.command("init")
def init_db(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite file"),
) -> None:
    """Create the orchestrator tables (safe to re-run)."""
    settings = load_settings(database)
    conn = open_database(settings)
    conn.close()
    console.print(f"[green]Initialised[/green] {settings.database_path}")
