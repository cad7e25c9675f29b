"""
Root Typer application for the fleet-core CLI.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import typer
from typer import Typer

app = Typer(
    name="fleet-core",
    help="fleet-core: backup policy scheduling and task lifecycle.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("fleet-core")
        except PackageNotFoundError:
            from fleet import __version__ as v
        typer.echo(f"fleet-core {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """fleet-core CLI: database, scheduler and agent backoff."""


# ── Sub-command registration ─────────────────────────────────────────────

from fleet.cli.agents import app as agents_app  # noqa: E402
from fleet.cli.db import app as db_app  # noqa: E402
from fleet.cli.scheduler import app as scheduler_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(scheduler_app, name="scheduler", help="Policy scheduler.")
app.add_typer(agents_app, name="agent", help="Agent task backoff.")
