"""
Reconciler: desired vs. existing, by name.

``same_alert`` is the equality contract. It compares the remote record against
exactly what the sync layer would send (rendered message, built options), so a
converged destination diffs to an empty plan.

Orphan computation walks *all* desired names, including those targeted at
other destinations: a name that is desired anywhere keeps its primary remote
id, and its surplus duplicates are drained one id per run.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from alert_spine.core.logging import get_logger
from alert_spine.domain.models import (
    Action,
    ActionKind,
    DesiredAlert,
    Orphan,
    ReconcilePlan,
    RemoteAlert,
    normalize_silenced,
    normalize_thresholds,
)
from alert_spine.engine.payload import MessageRenderer, build_options, normalize_monitor_type

logger = get_logger(__name__)

COMPARED_OPTIONS = (
    "evaluation_delay",
    "new_host_delay",
    "include_tags",
    "notify_no_data",
    "notify_audit",
    "no_data_timeframe",
    "timeout_h",
    "locked",
    "renotify_interval",
    "escalation_message",
)


def _strip(value: Any) -> str:
    return (value or "").strip()


def same_alert(desired: DesiredAlert, remote: RemoteAlert, renderer: MessageRenderer) -> bool:
    """True when ``remote`` already matches what would be sent for ``desired``."""
    alert = desired.alert
    wanted = build_options(alert)
    remote_options = remote.options

    if normalize_monitor_type(alert.monitor_type) != normalize_monitor_type(remote.monitor_type):
        return False
    if _strip(alert.query) != _strip(remote.query):
        return False
    if _strip(renderer.render(desired)) != _strip(remote.message):
        return False

    for key in COMPARED_OPTIONS:
        if wanted.get(key) != remote_options.get(key):
            return False

    if normalize_silenced(remote_options.get("silenced")) != wanted["silenced"]:
        return False
    if normalize_thresholds(remote_options.get("thresholds")) != wanted.get("thresholds"):
        return False
    if alert.require_full_window is not None and (
        remote_options.get("require_full_window") != alert.require_full_window
    ):
        return False
    return sorted(alert.tags) == sorted(remote.tags or [])


def diff(
    desired: Mapping[str, DesiredAlert],
    existing: Mapping[str, RemoteAlert],
    destination: str,
    renderer: MessageRenderer,
) -> ReconcilePlan:
    """Classify desired alerts for ``destination`` and compute the orphans."""
    plan = ReconcilePlan(destination=destination)

    for name, wanted in desired.items():
        if wanted.alert.target != destination:
            continue
        remote = existing.get(name)
        if remote is None:
            plan.actions[name] = Action(ActionKind.CREATE, wanted)
        elif same_alert(wanted, remote, renderer):
            plan.unchanged.append(name)
        else:
            plan.actions[name] = Action(ActionKind.UPDATE, wanted, remote)

    remaining = {name: remote.ids[:] for name, remote in existing.items()}
    for name in desired:
        ids = remaining.get(name)
        if ids is None:
            continue
        if len(ids) == 1:
            del remaining[name]
        else:
            remaining[name] = ids[1:]

    for name, ids in remaining.items():
        remote = existing[name]
        plan.orphans[name] = Orphan(
            remote=remote.with_ids(ids),
            ids=tuple(ids),
            still_desired=name in desired,
        )

    logger.debug(
        "alerts_diffed",
        destination=destination,
        creates=len(plan.creates),
        updates=len(plan.updates),
        unchanged=len(plan.unchanged),
        orphans=len(plan.orphans),
    )
    return plan


__all__ = ["same_alert", "diff"]
