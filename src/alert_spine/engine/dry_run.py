"""
Dry-run isolation: prove a plan would apply without touching production alerts.

Every desired name is prefixed (``"[dry-run] "`` by default) so the plan is
computed against shadow alerts only. Creates and updates go to the provider's
validate endpoint, and whatever validation or earlier dry runs left behind
under the prefix is deleted at the end.

State machine::

    START
      │ check_desired()         evaluation errors / unreadable files → EvaluationError
      ▼
    EVALUATE_DESIRED
      │ shadow()                prefix every desired name
      ▼
    SHADOW_PREFIX_DESIRED_NAMES
      │ probe()                 fetch, keep prefixed records, diff
      ▼
    PROBE_AGAINST_SHADOWED_EXISTING
      │ validate()              validate endpoint only
      ▼
    VALIDATE_CREATES_AND_UPDATES
      │ cleanup()               delete validated ids + shadow leftovers
      ▼
    CLEANUP_SHADOW_ARTIFACTS
      │ finish()                api errors → DryRunFailedError
      ▼
    END  (or FAILED)

Any step called out of order raises ``InvalidTransitionError``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum

from alert_spine.core.errors import DryRunFailedError, EvaluationError, InvalidTransitionError
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import DesiredAlert, ReconcilePlan, RemoteAlert, RunStats
from alert_spine.engine.evaluation import EvaluationResult
from alert_spine.engine.fetcher import RemoteStateFetcher
from alert_spine.engine.payload import MessageRenderer
from alert_spine.engine.reconciler import diff
from alert_spine.engine.sync import SyncExecutor
from alert_spine.execution.cancellation import ShutdownToken
from alert_spine.providers.base import Destination

logger = get_logger(__name__)

DEFAULT_PREFIX = "[dry-run] "


class DryRunState(str, Enum):
    START = "start"
    EVALUATE_DESIRED = "evaluate_desired"
    SHADOW_PREFIX_DESIRED_NAMES = "shadow_prefix_desired_names"
    PROBE_AGAINST_SHADOWED_EXISTING = "probe_against_shadowed_existing"
    VALIDATE_CREATES_AND_UPDATES = "validate_creates_and_updates"
    CLEANUP_SHADOW_ARTIFACTS = "cleanup_shadow_artifacts"
    END = "end"
    FAILED = "failed"


_ORDER = [
    DryRunState.START,
    DryRunState.EVALUATE_DESIRED,
    DryRunState.SHADOW_PREFIX_DESIRED_NAMES,
    DryRunState.PROBE_AGAINST_SHADOWED_EXISTING,
    DryRunState.VALIDATE_CREATES_AND_UPDATES,
    DryRunState.CLEANUP_SHADOW_ARTIFACTS,
    DryRunState.END,
]

VALID_TRANSITIONS: dict[DryRunState, set[DryRunState]] = {
    state: {_ORDER[i + 1], DryRunState.FAILED} for i, state in enumerate(_ORDER[:-1])
}
VALID_TRANSITIONS[DryRunState.END] = set()
VALID_TRANSITIONS[DryRunState.FAILED] = set()


class DryRunSession:
    """One dry run against one destination."""

    def __init__(
        self,
        destination: Destination,
        *,
        prefix: str = DEFAULT_PREFIX,
        stats: RunStats | None = None,
        shutdown: ShutdownToken | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.destination = destination
        self.prefix = prefix
        self.stats = stats or RunStats()
        self.shutdown = shutdown or ShutdownToken()
        self._sleep = sleep
        self.state = DryRunState.START
        self.desired: dict[str, DesiredAlert] = {}
        self.shadow_existing: dict[str, RemoteAlert] = {}
        self.plan: ReconcilePlan | None = None
        self.executor: SyncExecutor | None = None

    def _transition(self, to: DryRunState) -> None:
        if to not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move dry run from {self.state.value} to {to.value}"
            ).with_context(destination=self.destination.name)
        logger.debug(
            "dry_run_transition",
            destination=self.destination.name,
            from_state=self.state.value,
            to_state=to.value,
        )
        self.state = to

    def check_desired(self, evaluation: EvaluationResult, failed_reads: int = 0) -> dict[str, DesiredAlert]:
        self._transition(DryRunState.EVALUATE_DESIRED)
        if failed_reads:
            self._transition(DryRunState.FAILED)
            raise EvaluationError(f"{failed_reads} alert file(s) could not be read")
        if evaluation.errors:
            self._transition(DryRunState.FAILED)
            raise EvaluationError(
                f"{len(evaluation.errors)} alert definition(s) failed or never applied: "
                + ", ".join(evaluation.errors),
                definitions=evaluation.errors,
            )
        self.desired = dict(evaluation.desired)
        return self.desired

    def shadow(self) -> dict[str, DesiredAlert]:
        """Prefix every desired name."""
        self._transition(DryRunState.SHADOW_PREFIX_DESIRED_NAMES)
        shadowed = {}
        for name, desired in self.desired.items():
            shadow_name = self.prefix + name
            shadowed[shadow_name] = DesiredAlert(
                alert=desired.alert.renamed(shadow_name),
                recipients=desired.recipients,
                definition=desired.definition,
            )
        self.desired = shadowed
        return shadowed

    def probe(self, existing: Mapping[str, RemoteAlert] | None = None) -> ReconcilePlan:
        """Diff the shadow names against the prefixed remote records only."""
        self._transition(DryRunState.PROBE_AGAINST_SHADOWED_EXISTING)
        if existing is None:
            existing = RemoteStateFetcher(self.destination, stats=self.stats, sleep=self._sleep).fetch_all()
        self.shadow_existing = {
            name: remote for name, remote in existing.items() if name.startswith(self.prefix)
        }
        self.plan = diff(
            self.desired,
            self.shadow_existing,
            self.destination.name,
            MessageRenderer(self.destination.alert_key),
        )
        return self.plan

    def validate(self) -> RunStats:
        self._transition(DryRunState.VALIDATE_CREATES_AND_UPDATES)
        if self.plan is None:
            raise InvalidTransitionError("Dry run has no plan to validate").with_context(
                destination=self.destination.name
            )
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        self.executor = SyncExecutor(
            self.destination,
            stats=self.stats,
            shutdown=self.shutdown,
            validate_only=True,
            **kwargs,
        )
        return self.executor.execute(self.plan)

    def cleanup(self) -> int:
        """Delete validation artifacts and leftover shadow alerts; returns the count removed."""
        self._transition(DryRunState.CLEANUP_SHADOW_ARTIFACTS)
        if self.executor is None:
            raise InvalidTransitionError("Dry run has not validated anything").with_context(
                destination=self.destination.name
            )
        ids = list(self.executor.validated_ids)
        for remote in self.shadow_existing.values():
            ids.extend(remote.ids)

        removed = 0
        for alert_id in dict.fromkeys(ids):
            if self.executor.delete(alert_id):
                removed += 1
        logger.info("dry_run_cleanup", destination=self.destination.name, targets=len(ids), removed=removed)
        return removed

    def finish(self) -> RunStats:
        if self.stats.api_errors:
            self._transition(DryRunState.FAILED)
            raise DryRunFailedError(self.stats.api_errors, destination=self.destination.name)
        self._transition(DryRunState.END)
        return self.stats

    def run(self, evaluation: EvaluationResult, failed_reads: int = 0) -> RunStats:
        """Drive every step in order."""
        self.check_desired(evaluation, failed_reads)
        self.shadow()
        self.probe()
        self.validate()
        self.cleanup()
        return self.finish()


__all__ = ["DEFAULT_PREFIX", "DryRunState", "VALID_TRANSITIONS", "DryRunSession"]
