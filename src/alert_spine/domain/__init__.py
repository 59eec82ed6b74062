"""Domain records for a reconciliation run."""

from alert_spine.domain.models import (
    Action,
    ActionKind,
    AlertInstance,
    AppliesState,
    DesiredAlert,
    HostContext,
    NotifyPolicy,
    Orphan,
    ReconcilePlan,
    RemoteAlert,
    RunStats,
    freeze_host,
)

__all__ = [
    "Action",
    "ActionKind",
    "AlertInstance",
    "AppliesState",
    "DesiredAlert",
    "HostContext",
    "NotifyPolicy",
    "Orphan",
    "ReconcilePlan",
    "RemoteAlert",
    "RunStats",
    "freeze_host",
]
