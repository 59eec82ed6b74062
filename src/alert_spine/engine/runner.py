"""
Run orchestrator.

One ``Runner.run()``:

1. builds the configured sources and reads alert definitions, groups and hosts;
2. evaluates every definition against every host;
3. for each destination: fetch → diff → sync (or the dry-run session), then
   publishes the destination's counters as ``<destination>.<stat>`` gauges.

The shutdown token is checked between phases and before each destination; a
run that was asked to stop reports "shut down" instead of "complete".
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.core.config import RunConfig
from alert_spine.core.errors import AlertSpineError, EvaluationError
from alert_spine.core.logging import LogContext, get_logger
from alert_spine.core.settings import AlertSpineSettings, get_settings
from alert_spine.domain.models import HostContext, ReconcilePlan, RunStats
from alert_spine.engine.dry_run import DryRunSession
from alert_spine.engine.evaluation import EvaluationResult, evaluate
from alert_spine.engine.fetcher import RemoteStateFetcher
from alert_spine.engine.payload import MessageRenderer
from alert_spine.engine.reconciler import diff
from alert_spine.engine.sync import SyncExecutor
from alert_spine.execution.cancellation import ShutdownToken
from alert_spine.framework.registry import (
    ComponentContext,
    alert_sources,
    build_components,
    destinations,
    group_sources,
    host_sources,
)
from alert_spine.observability.metrics import gauge, histogram
from alert_spine.providers.base import Destination

logger = get_logger(__name__)


@dataclass
class RunSummary:
    run_id: str
    dry_run: bool
    alerts_read: int = 0
    alerts_failed: int = 0
    groups: int = 0
    hosts: int = 0
    evaluation: EvaluationResult | None = None
    destinations: dict[str, RunStats] = field(default_factory=dict)
    seconds: float = 0.0
    shut_down: bool = False


class Runner:
    """Reads sources, evaluates and syncs every configured destination."""

    def __init__(
        self,
        config: RunConfig,
        *,
        dry_run: bool = False,
        settings: AlertSpineSettings | None = None,
        shutdown: ShutdownToken | None = None,
        pool: str = "process",
    ):
        self.config = config
        self.dry_run = dry_run
        self.settings = settings or get_settings()
        self.shutdown = shutdown or ShutdownToken()
        self.pool = pool
        self.context = ComponentContext(
            repo_path=config.alerts_repo_path,
            dry_run=dry_run,
            shutdown=self.shutdown,
            settings=self.settings,
        )

    # ── inputs ───────────────────────────────────────────────────

    def read_alerts(self) -> tuple[list[AlertDefinition], int]:
        definitions: list[AlertDefinition] = []
        failed = 0
        for source in build_components(alert_sources, self.config.alert_sources, self.context):
            result = source.list_alerts()
            definitions.extend(result.alerts)
            failed += result.failed
        gauge("alerts.read.count").set(len(definitions))
        gauge("alerts.read.failed").set(failed)
        logger.info("alerts_read", count=len(definitions), failed=failed)
        return definitions, failed

    def read_groups(self) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for source in build_components(group_sources, self.config.group_sources, self.context):
            for name, people in source.list_groups().items():
                groups.setdefault(name, []).extend(people)
        people = {person for members in groups.values() for person in members}
        gauge("groups.count").set(len(groups))
        gauge("groups.people").set(len(people))
        logger.info("groups_read", groups=len(groups), people=len(people))
        return groups

    def read_hosts(self) -> list[HostContext]:
        hosts: list[HostContext] = []
        for source in build_components(host_sources, self.config.host_sources, self.context):
            if self.shutdown.requested:
                break
            source_hosts = source.list_hosts()
            gauge("hosts.count").labels(source=type(source).__name__).set(len(source_hosts))
            hosts.extend(source_hosts)
        logger.info("hosts_read", count=len(hosts))
        return hosts

    def _evaluate(self, summary: RunSummary) -> EvaluationResult:
        definitions, failed = self.read_alerts()
        summary.alerts_read, summary.alerts_failed = len(definitions), failed
        if self.dry_run and failed:
            raise EvaluationError(f"{failed} alert file(s) could not be read; refusing to dry run")

        groups = self.read_groups()
        hosts = self.read_hosts()
        summary.groups, summary.hosts = len(groups), len(hosts)

        evaluation = evaluate(
            hosts,
            definitions,
            groups,
            processes=self.config.processes,
            pool=self.pool,
            shutdown=self.shutdown,
        )
        summary.evaluation = evaluation
        if self.dry_run and evaluation.errors:
            raise EvaluationError(
                f"{len(evaluation.errors)} alert definition(s) failed to evaluate; refusing to dry run",
                definitions=list(evaluation.errors),
            )
        return evaluation

    # ── run ──────────────────────────────────────────────────────

    def run(self) -> RunSummary:
        summary = RunSummary(run_id=uuid.uuid4().hex[:12], dry_run=self.dry_run)
        started = time.monotonic()

        with LogContext(run_id=summary.run_id, dry_run=self.dry_run):
            evaluation = self._evaluate(summary)

            for destination in build_components(destinations, self.config.destinations, self.context):
                if self.shutdown.requested:
                    destination.close()
                    continue
                with LogContext(destination=destination.name):
                    summary.destinations[destination.name] = self.sync_destination(
                        destination, evaluation, summary.alerts_failed
                    )

            summary.seconds = time.monotonic() - started
            summary.shut_down = self.shutdown.requested
            gauge("run_time").set(summary.seconds)
            if summary.shut_down:
                logger.info("run_shut_down", seconds=round(summary.seconds, 2))
            else:
                logger.info("run_complete", seconds=round(summary.seconds, 2))
        return summary

    def sync_destination(
        self, destination: Destination, evaluation: EvaluationResult, failed_reads: int = 0
    ) -> RunStats:
        stats = RunStats()
        started = time.monotonic()
        try:
            if self.dry_run:
                session = DryRunSession(
                    destination,
                    prefix=self.settings.dry_run_prefix,
                    stats=stats,
                    shutdown=self.shutdown,
                )
                session.run(evaluation, failed_reads)
            else:
                existing = RemoteStateFetcher(destination, stats=stats).fetch_all()
                plan = diff(
                    evaluation.desired,
                    existing,
                    destination.name,
                    MessageRenderer(destination.alert_key),
                )
                SyncExecutor(destination, stats=stats, shutdown=self.shutdown).execute(plan)
        except AlertSpineError as e:
            logger.error("destination_failed", **e.to_dict())
            raise
        finally:
            destination.close()
            metric = "destinations.run_time.dry_run" if self.dry_run else "destinations.run_time"
            histogram(metric).labels(destination=destination.name).observe(time.monotonic() - started)

        if not self.shutdown.requested:
            self.report_stats(destination.name, stats)
        return stats

    def report_stats(self, name: str, stats: RunStats) -> None:
        counters = stats.counters()
        for key, value in counters.items():
            gauge(f"{name}.{key}").set(value)
        logger.info(
            "destination_synced",
            created=f"{counters['alerts_created']}/{counters['alerts_to_be_created']}",
            updated=f"{counters['alerts_updated']}/{counters['alerts_to_be_updated']}",
            deleted=f"{counters['alerts_deleted']}/{counters['alerts_to_be_deleted']}",
            api_errors=len(stats.api_errors),
        )

    # ── plan ─────────────────────────────────────────────────────

    def plan(self) -> dict[str, ReconcilePlan]:
        """Evaluate, fetch and diff every destination without changing anything."""
        summary = RunSummary(run_id=uuid.uuid4().hex[:12], dry_run=True)
        plans: dict[str, ReconcilePlan] = {}
        with LogContext(run_id=summary.run_id, plan=True):
            evaluation = self._evaluate(summary)
            for destination in build_components(destinations, self.config.destinations, self.context):
                try:
                    existing = RemoteStateFetcher(destination).fetch_all()
                    plans[destination.name] = diff(
                        evaluation.desired,
                        existing,
                        destination.name,
                        MessageRenderer(destination.alert_key),
                    )
                finally:
                    destination.close()
        return plans


__all__ = ["RunSummary", "Runner"]
