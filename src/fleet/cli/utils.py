"""
CLI utility helpers: output formatting and connection management.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from fleet.core.database import connect
from fleet.core.errors import FleetError
from fleet.core.schema import initialize_schema
from fleet.core.settings import FleetSettings, get_settings

console = Console()
err_console = Console(stderr=True)


def load_settings(database: str | None = None) -> FleetSettings:
    """Environment settings, with ``--database`` taking precedence."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": database})
    return settings


def open_database(settings: FleetSettings) -> Any:
    """Open the configured database and make sure the tables exist."""
    conn = connect(settings.database_path)
    initialize_schema(conn)
    return conn


def fail(error: FleetError) -> None:
    """Print a FleetError and exit non-zero."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    if not rows:
        console.print(f"[dim]{title}: nothing to show[/dim]")
        return
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row))
    console.print(table)
