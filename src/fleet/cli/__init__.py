"""fleet-core command line interface (``fleet-core``)."""

from fleet.cli.app import app

__all__ = ["app"]
