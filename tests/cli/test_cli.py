"""Tests for the alert-spine CLI."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from alert_spine import __version__
from alert_spine.cli.app import app
from alert_spine.core.errors import DryRunFailedError, RemoteFetchError
from alert_spine.domain.models import Action, ActionKind, ReconcilePlan, RunStats
from alert_spine.engine.runner import RunSummary
from tests._support.fakes import make_desired

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("alerts_repo_path: .\nprocesses: 0\n")
    return path


@pytest.fixture
def engine():
    """Patch out the runner, signal handlers and logging setup.

    Logging is left unconfigured because CliRunner's captured streams are
    closed after each invoke.
    """
    with (
        patch("alert_spine.cli.app.Runner") as runner_cls,
        patch("alert_spine.cli.app.install_signal_handlers"),
        patch("alert_spine.cli.app.configure_logging"),
    ):
        yield runner_cls


def test_log_options_are_forwarded(engine, config_file):
    engine.return_value.run.return_value = RunSummary(run_id="abc", dry_run=False)
    with patch("alert_spine.cli.app.configure_logging") as configure:
        runner.invoke(app, ["run", "-c", str(config_file), "--log-level", "DEBUG", "--json-logs"])
    configure.assert_called_once_with(level="DEBUG", json_format=True)


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == f"alert-spine {__version__}"


class TestRun:
    def test_run_prints_summary(self, engine, config_file):
        stats = RunStats(alerts_created=2, alerts_to_be_created=2)
        engine.return_value.run.return_value = RunSummary(
            run_id="abc", dry_run=False, destinations={"datadog": stats}, seconds=1.5
        )

        result = runner.invoke(app, ["run", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "2/2" in result.stdout
        assert "alert-spine run complete in 1.50 seconds" in result.stdout
        _, kwargs = engine.call_args
        assert kwargs["dry_run"] is False

    def test_dry_run_flag(self, engine, config_file):
        engine.return_value.run.return_value = RunSummary(run_id="abc", dry_run=True)
        result = runner.invoke(app, ["run", "-c", str(config_file), "--dry-run"])
        assert result.exit_code == 0
        assert "dry run complete" in result.stdout
        assert engine.call_args.kwargs["dry_run"] is True

    def test_shut_down(self, engine, config_file):
        engine.return_value.run.return_value = RunSummary(run_id="abc", dry_run=False, shut_down=True)
        result = runner.invoke(app, ["run", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "shut down" in result.stdout

    def test_engine_error_exits_1(self, engine, config_file):
        engine.return_value.run.side_effect = RemoteFetchError("listing failed")
        result = runner.invoke(app, ["run", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "listing failed" in result.output

    def test_dry_run_failure_lists_errors(self, engine, config_file):
        engine.return_value.run.side_effect = DryRunFailedError(["400 on alert x"])
        result = runner.invoke(app, ["run", "-c", str(config_file), "--dry-run"])
        assert result.exit_code == 1
        assert "400 on alert x" in result.output

    def test_bad_config_exits_1(self, engine, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("destinations: {not: a list}\n")
        result = runner.invoke(app, ["run", "-c", str(path)])
        assert result.exit_code == 1
        assert "CONFIG" in result.output
        engine.assert_not_called()

    def test_missing_config_exits_1(self, engine, tmp_path):
        result = runner.invoke(app, ["run", "-c", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        engine.assert_not_called()


class TestPlan:
    def test_converged(self, engine, config_file):
        engine.return_value.plan.return_value = {"datadog": ReconcilePlan(destination="datadog")}
        result = runner.invoke(app, ["plan", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "No changes" in result.stdout

    def test_changes_are_listed(self, engine, config_file):
        desired = make_desired("cpu high")
        plan = ReconcilePlan(destination="datadog", actions={"cpu high": Action(ActionKind.CREATE, desired)})
        engine.return_value.plan.return_value = {"datadog": plan}

        result = runner.invoke(app, ["plan", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "create" in result.stdout
        assert "cpu high" in result.stdout
