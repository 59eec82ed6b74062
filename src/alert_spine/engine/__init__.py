"""Reconciliation engine: evaluation, fetch, diff, sync and dry run."""

from alert_spine.engine.dry_run import DryRunSession, DryRunState
from alert_spine.engine.evaluation import EvaluationResult, evaluate
from alert_spine.engine.fetcher import RemoteStateFetcher
from alert_spine.engine.payload import MessageRenderer, build_payload, normalize_monitor_type
from alert_spine.engine.reconciler import diff, same_alert
from alert_spine.engine.runner import Runner, RunSummary
from alert_spine.engine.sync import SyncExecutor

__all__ = [
    "DryRunSession",
    "DryRunState",
    "EvaluationResult",
    "evaluate",
    "RemoteStateFetcher",
    "MessageRenderer",
    "build_payload",
    "normalize_monitor_type",
    "diff",
    "same_alert",
    "Runner",
    "RunSummary",
    "SyncExecutor",
]
