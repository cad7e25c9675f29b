"""
CLI group ``fleet-core scheduler``: run and inspect the policy scheduler.
"""

from __future__ import annotations

import asyncio
import signal
import threading

import typer

from fleet.cli.utils import (
    console,
    fail,
    load_settings,
    open_database,
    print_json,
    print_table,
)
from fleet.core.errors import FleetError
from fleet.core.logging import configure_logging
from fleet.core.scheduling import (
    compute_next_run,
    create_scheduler,
    parse_schedule,
)
from fleet.core.timestamps import to_iso8601, utc_now

app = typer.Typer(no_args_is_help=True)


@app.command("run")
def run_scheduler(
    database: str | None = typer.Option(None, "--database", "-d"),
    once: bool = typer.Option(False, "--once", help="Run a single tick and exit."),
) -> None:
    """Run the scheduler loop until interrupted."""
    settings = load_settings(database)
    configure_logging(settings.log_level, settings.json_logs, service="fleet-scheduler")
    conn = open_database(settings)
    scheduler = create_scheduler(conn, settings)

    if once:
        results = asyncio.run(scheduler.run_once())
        created = sum(r.tasks_created for r in results)
        console.print(f"Evaluated {len(results)} schedule(s), created {created} task(s)")
        return

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    scheduler.start()
    try:
        stop.wait()
    finally:
        scheduler.stop()
        conn.close()


@app.command("status")
def scheduler_status(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show enabled policies and their upcoming runs."""
    settings = load_settings(database)
    conn = open_database(settings)
    status = create_scheduler(conn, settings).status()

    if json_out:
        print_json(status.to_dict())
        return

    console.print(f"Policies enabled: [bold]{status.policies_enabled}[/bold]")
    print_table(
        "Upcoming schedule",
        ["Next run", "Policy", "Type", "Schedule"],
        [
            [to_iso8601(item.next_run), item.policy_name, item.task_type, item.schedule]
            for item in status.upcoming_schedule
        ],
    )


@app.command("trigger")
def trigger_policy(
    policy_id: str = typer.Argument(..., help="Policy ID"),
    task_type: str = typer.Option("backup", "--type", "-t", help="backup, check or prune"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Create tasks for a policy now, leaving its schedule untouched."""
    settings = load_settings(database)
    conn = open_database(settings)
    try:
        tasks = create_scheduler(conn, settings).trigger(policy_id, task_type)
    except FleetError as e:
        fail(e)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    console.print(f"Created {len(tasks)} {task_type} task(s)")


@app.command("validate")
def validate(
    schedule: str = typer.Argument(..., help='Cron ("0 2 * * *") or interval ("every 6h")'),
    count: int = typer.Option(5, "--count", "-n", min=1, max=50),
) -> None:
    """Check a schedule string and print its next runs."""
    try:
        spec = parse_schedule(schedule)
    except FleetError as e:
        fail(e)

    when = utc_now()
    rows = []
    for i in range(count):
        try:
            when = compute_next_run(spec, when)
        except OverflowError:
            break
        rows.append([i + 1, to_iso8601(when)])
    print_table(f"{spec.kind}: {spec.expression}", ["#", "Run at (UTC)"], rows)
