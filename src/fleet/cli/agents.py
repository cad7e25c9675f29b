"""
CLI group ``fleet-core agent``: inspect agent retry backoff.
"""

from __future__ import annotations

import typer

from fleet.cli.utils import console, fail, load_settings, open_database, print_json, print_table
from fleet.core.errors import FleetError
from fleet.core.timestamps import to_iso8601
from fleet.execution import create_lifecycle

app = typer.Typer(no_args_is_help=True)


@app.command("backoff")
def agent_backoff(
    agent_id: str = typer.Argument(..., help="Agent ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List an agent's tasks that are waiting to be retried."""
    settings = load_settings(database)
    conn = open_database(settings)
    try:
        backoff = create_lifecycle(conn, settings).get_agent_backoff(agent_id)
    except FleetError as e:
        fail(e)

    if json_out:
        print_json(backoff.to_dict())
        return

    console.print(f"Tasks in backoff: [bold]{backoff.tasks_in_backoff}[/bold]")
    print_table(
        f"Agent {agent_id}",
        ["Task", "Type", "Retry", "Next retry", "Category"],
        [
            [
                t.task_id,
                t.task_type,
                f"{t.retry_count}/{t.max_retries}",
                to_iso8601(t.next_retry_at),
                t.error_category,
            ]
            for t in backoff.tasks
        ],
    )
