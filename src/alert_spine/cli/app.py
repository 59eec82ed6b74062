"""
Root Typer application for the ``alert-spine`` CLI.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from alert_spine import __version__
from alert_spine.cli.utils import console, fail, load_config, plan_table, stats_table
from alert_spine.core.errors import AlertSpineError
from alert_spine.core.logging import configure_logging
from alert_spine.core.settings import get_settings
from alert_spine.engine.runner import Runner
from alert_spine.execution.cancellation import ShutdownToken, install_signal_handlers

app = Typer(
    name="alert-spine",
    help="alert-spine: keep alerting backends converged with alerts-as-code.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"alert-spine {__version__}")
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
    """alert-spine CLI: evaluate alert definitions and sync them to destinations."""


def _setup_logging(log_level: str | None, json_logs: bool | None) -> None:
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs if json_logs is not None else settings.log_json,
    )


@app.command("run")
def run_cmd(
    config: Path | None = typer.Option(None, "--config", "-c", help="Run configuration YAML."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate against shadow alerts only."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    json_logs: bool | None = typer.Option(
        None, "--json-logs/--console-logs", help="Force JSON or console log output."
    ),
) -> None:
    """Evaluate every alert definition and sync the result to each destination."""
    _setup_logging(log_level, json_logs)
    settings = get_settings()
    run_config = load_config(config or settings.config_path)

    shutdown = ShutdownToken()
    install_signal_handlers(shutdown)

    try:
        summary = Runner(run_config, dry_run=dry_run, settings=settings, shutdown=shutdown).run()
    except AlertSpineError as e:
        fail(e)

    if summary.destinations:
        console.print(stats_table(summary.destinations))
    if summary.shut_down:
        console.print("[yellow]alert-spine run shut down[/yellow]")
    else:
        mode = "dry run" if dry_run else "run"
        console.print(f"[green]alert-spine {mode} complete in {summary.seconds:.2f} seconds[/green]")


@app.command("plan")
def plan_cmd(
    config: Path | None = typer.Option(None, "--config", "-c", help="Run configuration YAML."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
) -> None:
    """Show what a run would create, update and delete, without changing anything."""
    _setup_logging(log_level, None)
    settings = get_settings()
    run_config = load_config(config or settings.config_path)

    try:
        plans = Runner(run_config, settings=settings).plan()
    except AlertSpineError as e:
        fail(e)

    if all(plan.is_converged for plan in plans.values()):
        console.print("[green]No changes. Destinations are converged.[/green]")
        return
    console.print(plan_table(plans))
