"""
CLI output helpers.
"""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from alert_spine.core.config import RunConfig
from alert_spine.core.errors import AlertSpineError, DryRunFailedError
from alert_spine.domain.models import ReconcilePlan, RunStats

console = Console()
err_console = Console(stderr=True)


def load_config(path: Path) -> RunConfig:
    try:
        return RunConfig.from_yaml_file(path)
    except AlertSpineError as e:
        fail(e)


def fail(error: AlertSpineError) -> NoReturn:
    """Print ``error`` to stderr and exit 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    if isinstance(error, DryRunFailedError):
        for line in error.errors:
            err_console.print(f"  [red]•[/red] {line}")
    raise typer.Exit(code=1)


def stats_table(destinations: dict[str, RunStats]) -> Table:
    table = Table(title="Sync results", show_lines=False)
    table.add_column("Destination", style="cyan")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("API errors", justify="right")

    for name, stats in destinations.items():
        c = stats.counters()
        errors = len(stats.api_errors)
        table.add_row(
            name,
            f"{c['alerts_created']}/{c['alerts_to_be_created']}",
            f"{c['alerts_updated']}/{c['alerts_to_be_updated']}",
            f"{c['alerts_deleted']}/{c['alerts_to_be_deleted']}",
            f"[red]{errors}[/red]" if errors else "0",
        )
    return table


def plan_table(plans: dict[str, ReconcilePlan]) -> Table:
    table = Table(title="Planned changes")
    table.add_column("Destination", style="cyan")
    table.add_column("Action")
    table.add_column("Alert")
    table.add_column("Ids", justify="right")

    styles = {"create": "green", "update": "yellow", "delete": "red"}
    for destination, plan in plans.items():
        for action in plan.actions.values():
            kind = action.kind.value
            ids = str(action.existing.primary_id) if action.existing else ""
            table.add_row(destination, f"[{styles[kind]}]{kind}[/{styles[kind]}]", action.name, ids)
        for orphan in plan.orphans.values():
            ids = ", ".join(str(i) for i in orphan.ids_to_delete)
            table.add_row(destination, "[red]delete[/red]", orphan.name, ids)
    return table
