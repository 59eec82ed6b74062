"""
Evaluation engine: definitions × hosts → desired alerts.

Each definition is evaluated against every host independently, optionally in
a process or thread pool. Per definition the host loop:

    evaluate ──fail──► count error, next host
       │
    never? ──► next host
       │
    count application; name already accepted here? ──► next host (or stop if once)
       │
    recipients = people ∪ group members  (fallback groups when empty)
       │
    accept DesiredAlert; stop if once

Definitions return their accepted alerts; the parent merges them in
definition order, so the first definition producing a name owns it and a later
one is logged as a collision.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import AppliesState, DesiredAlert, HostContext
from alert_spine.execution.cancellation import ShutdownToken
from alert_spine.observability.metrics import gauge

logger = get_logger(__name__)


@dataclass
class DefinitionOutcome:
    """What one definition produced across all hosts."""

    definition: str
    hosts: int = 0
    evaluations: int = 0
    applies: int = 0
    errors: int = 0
    last_error: str | None = None
    accepted: dict[str, DesiredAlert] = field(default_factory=dict)

    @property
    def failed_on_all(self) -> bool:
        return self.evaluations > 0 and self.errors == self.evaluations

    @property
    def never_applies(self) -> bool:
        return self.applies == 0


@dataclass
class EvaluationResult:
    desired: dict[str, DesiredAlert] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    outcomes: list[DefinitionOutcome] = field(default_factory=list)
    collisions: int = 0
    interrupted: bool = False


def evaluate_definition(
    definition: AlertDefinition,
    hosts: Sequence[HostContext],
    groups: Mapping[str, list[str]],
) -> DefinitionOutcome:
    """Run ``definition`` against every host. Module-level so process pools can pickle it."""
    outcome = DefinitionOutcome(definition=str(definition), hosts=len(hosts))

    for host in hosts:
        outcome.evaluations += 1
        try:
            applies = definition.evaluate(host)
        except Exception as e:
            outcome.errors += 1
            outcome.last_error = f"{type(e).__name__}: {e}"
            logger.debug("alert_evaluation_failed", definition=outcome.definition, error=outcome.last_error)
            continue

        if applies is AppliesState.NEVER:
            continue
        outcome.applies += 1

        alert = definition.alert
        if alert.name not in outcome.accepted:
            outcome.accepted[alert.name] = DesiredAlert(
                alert=alert,
                recipients=alert.notify.resolve_recipients(groups),
                definition=outcome.definition,
            )

        if applies is AppliesState.ONCE:
            break

    return outcome


def _report(outcome: DefinitionOutcome) -> None:
    tags = {"definition": outcome.definition}
    gauge("alerts.evaluate.errors").labels(**tags).set(outcome.errors)
    gauge("alerts.evaluate.applies").labels(**tags).set(outcome.applies)
    gauge("alerts.evaluate.failed_on_all").labels(**tags).set(int(outcome.failed_on_all))
    gauge("alerts.evaluate.never_applies").labels(**tags).set(int(outcome.never_applies))

    logger.info(
        "alert_applies",
        definition=outcome.definition,
        applies=outcome.applies,
        hosts=outcome.hosts,
    )
    if outcome.failed_on_all:
        logger.error(
            "alert_failed_on_all_hosts",
            definition=outcome.definition,
            hosts=outcome.hosts,
            last_error=outcome.last_error,
        )
    elif outcome.never_applies:
        logger.warning("alert_never_applies", definition=outcome.definition, hosts=outcome.hosts)


def _make_executor(processes: int, pool: str) -> Executor:
    if pool == "thread":
        return ThreadPoolExecutor(max_workers=processes, thread_name_prefix="alert-eval")
    return ProcessPoolExecutor(max_workers=processes)


def evaluate(
    hosts: Sequence[HostContext],
    definitions: Sequence[AlertDefinition],
    groups: Mapping[str, list[str]],
    *,
    processes: int | None = None,
    pool: str = "process",
    shutdown: ShutdownToken | None = None,
) -> EvaluationResult:
    """Evaluate every definition against every host and merge the results.

    Args:
        hosts: Host attribute bags
        definitions: Alert definitions, in catalog order
        groups: Group name → members
        processes: Pool size; ``None`` or ``0`` evaluates in-line
        pool: ``process`` or ``thread``
        shutdown: Checked before each definition is started
    """
    shutdown = shutdown or ShutdownToken()
    hosts = list(hosts)
    groups = dict(groups)
    result = EvaluationResult()
    outcomes: list[DefinitionOutcome] = []

    if processes:
        with _make_executor(processes, pool) as executor:
            futures: list[Future[DefinitionOutcome]] = []
            for definition in definitions:
                if shutdown.requested:
                    result.interrupted = True
                    break
                futures.append(executor.submit(evaluate_definition, definition, hosts, groups))
            for future in futures:
                if shutdown.requested and not future.done():
                    future.cancel()
                    result.interrupted = True
                    continue
                outcomes.append(future.result())
    else:
        for definition in definitions:
            if shutdown.requested:
                result.interrupted = True
                break
            outcomes.append(evaluate_definition(definition, hosts, groups))

    for outcome in outcomes:
        _report(outcome)
        if outcome.failed_on_all or outcome.never_applies:
            result.errors.append(outcome.definition)
        for name, desired in outcome.accepted.items():
            owner = result.desired.get(name)
            if owner is not None:
                result.collisions += 1
                logger.warning(
                    "alert_name_collision",
                    alert_name=name,
                    kept_definition=owner.definition,
                    dropped_definition=outcome.definition,
                )
                continue
            result.desired[name] = desired

    result.outcomes = outcomes
    logger.info(
        "alerts_evaluated",
        definitions=len(outcomes),
        hosts=len(hosts),
        desired=len(result.desired),
        errors=len(result.errors),
        collisions=result.collisions,
    )
    return result


__all__ = ["DefinitionOutcome", "EvaluationResult", "evaluate_definition", "evaluate"]
