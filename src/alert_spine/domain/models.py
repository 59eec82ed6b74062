"""
Domain records shared by the evaluation, fetch, reconcile and sync phases.

Lifecycle of one alert through a run::

    HostContext ──► AlertDefinition.evaluate() ──► AlertInstance (frozen)
                                                        │
                             DesiredAlert(instance, recipients)
                                                        │
    provider records ──► RemoteAlert (ids collapsed) ──►│ Reconciler
                                                        ▼
                                  ReconcilePlan(actions, orphans, unchanged)
                                                        │
                                                        ▼ Sync
                                                   RunStats

Everything produced before the Reconciler is immutable: AlertInstance and
DesiredAlert are frozen dataclasses and HostContext is a read-only mapping, so
a snapshot taken while iterating hosts cannot be changed by later evaluations.
RunStats is the only mutable record and guards its counters with a lock
because sync workers update it concurrently.

Tags:
    domain-model, dataclasses, immutability, alert-spine
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Iterator, Mapping


class HostContext(Mapping[str, Any]):
    """Read-only attribute bag describing one host or service.

    Plain mapping semantics (``host["role"]``, ``host.get("role")``) and
    picklable, so it can cross a process-pool boundary.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None, **attributes: Any):
        self._data = dict(data or {}, **attributes)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getstate__(self) -> dict[str, Any]:
        return self._data

    def __setstate__(self, state: dict[str, Any]) -> None:
        self._data = state

    def __repr__(self) -> str:
        return f"HostContext({self._data!r})"


def freeze_host(attributes: Mapping[str, Any]) -> HostContext:
    """Return a read-only copy of a host's attribute bag."""
    if isinstance(attributes, HostContext):
        return attributes
    return HostContext(attributes)


class AppliesState(str, Enum):
    """Whether an evaluated definition applies to the host it was evaluated for."""

    NEVER = "never"
    APPLIES = "applies"
    ONCE = "once"

    @classmethod
    def coerce(cls, value: Any) -> AppliesState:
        """Map DSL values (``True``/``False``/``"once"``) onto the enum."""
        if isinstance(value, AppliesState):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "once":
                return cls.ONCE
            if lowered in ("never", "false", ""):
                return cls.NEVER
            return cls.APPLIES
        return cls.APPLIES if value else cls.NEVER

    @property
    def applies(self) -> bool:
        return self is not AppliesState.NEVER


def normalize_silenced(value: Any) -> dict[str, Any]:
    """``True`` silences every scope (``{"*": None}``); falsy means not silenced."""
    if value is True:
        return {"*": None}
    if not value:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    raise ValueError(f"silenced must be a bool or a mapping, got {value!r}")


def normalize_thresholds(value: Any) -> dict[str, Any] | None:
    """Stringify threshold keys so ``{critical: 1}`` and ``{"critical": 1}`` compare equal."""
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValueError(f"thresholds must be a mapping, got {value!r}")
    return {str(getattr(k, "value", k)): v for k, v in value.items()}


@dataclass(frozen=True)
class NotifyPolicy:
    """Who gets notified and how."""

    people: tuple[str, ...] = ()
    groups: tuple[str, ...] = ()
    fallback_groups: tuple[str, ...] = ()
    audit: bool = False
    recovery: bool = True
    include_tags: bool | None = None
    escalation_message: str | None = None
    renotify_interval: int | None = None

    def __post_init__(self) -> None:
        for name in ("people", "groups", "fallback_groups"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    def resolve_recipients(self, groups: Mapping[str, list[str]]) -> frozenset[str]:
        """Explicit people plus group members; fallback groups only when that is empty."""
        people = set(self.people)
        for group in self.groups:
            people.update(groups.get(group, ()))
        if not people and self.fallback_groups:
            for group in self.fallback_groups:
                people.update(groups.get(group, ()))
        return frozenset(people)


@dataclass(frozen=True)
class AlertInstance:
    """A materialized desired alert. ``name`` is the global identity key."""

    name: str
    query: str
    message: str = ""
    monitor_type: str = "metric alert"
    target: str = "datadog"
    notify: NotifyPolicy = field(default_factory=NotifyPolicy)
    evaluation_delay: int | None = None
    new_host_delay: int | None = None
    require_full_window: bool | None = None
    timeout_h: int | None = None
    thresholds: Mapping[str, Any] | None = None
    no_data_timeframe: int | None = None
    notify_no_data: bool = False
    silenced: Mapping[str, Any] = field(default_factory=dict)
    locked: bool | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "silenced", normalize_silenced(self.silenced))
        object.__setattr__(self, "thresholds", normalize_thresholds(self.thresholds))
        object.__setattr__(self, "tags", tuple(self.tags))

    def renamed(self, name: str) -> AlertInstance:
        """Copy with a different name (used for dry-run shadow names)."""
        return replace(self, name=name)


@dataclass(frozen=True)
class DesiredAlert:
    """An accepted alert and its resolved recipients."""

    alert: AlertInstance
    recipients: frozenset[str] = frozenset()
    definition: str = ""

    @property
    def name(self) -> str:
        return self.alert.name


@dataclass
class RemoteAlert:
    """Existing remote alerts sharing one name.

    The first-seen record supplies every field; ``ids`` accumulates the ids of
    all records with this name, primary id first.
    """

    name: str
    ids: list[int]
    monitor_type: str = ""
    query: str = ""
    message: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> RemoteAlert:
        return cls(
            name=record.get("name") or "",
            ids=[record["id"]],
            monitor_type=record.get("type") or "",
            query=record.get("query") or "",
            message=record.get("message") or "",
            options=dict(record.get("options") or {}),
            tags=list(record.get("tags") or []),
            raw=dict(record),
        )

    @property
    def primary_id(self) -> int:
        return self.ids[0]

    def is_managed(self, marker: str) -> bool:
        """True when the message carries the managed-alert marker."""
        return marker in (self.message or "")

    def with_ids(self, ids: list[int]) -> RemoteAlert:
        return replace(self, ids=list(ids))


class ActionKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class Action:
    """One create or update to run against a destination."""

    kind: ActionKind
    desired: DesiredAlert
    existing: RemoteAlert | None = None

    @property
    def name(self) -> str:
        return self.desired.name


@dataclass(frozen=True)
class Orphan:
    """Remote ids scheduled for deletion under one name.

    ``still_desired`` marks a surplus-duplicate drain: the name is still
    desired, so only one id is deleted per run.
    """

    remote: RemoteAlert
    ids: tuple[int, ...]
    still_desired: bool = False

    @property
    def name(self) -> str:
        return self.remote.name

    @property
    def ids_to_delete(self) -> tuple[int, ...]:
        if self.still_desired:
            return self.ids[:1]
        return self.ids


@dataclass
class ReconcilePlan:
    """Result of diffing desired against existing state for one destination."""

    destination: str
    actions: dict[str, Action] = field(default_factory=dict)
    orphans: dict[str, Orphan] = field(default_factory=dict)
    unchanged: list[str] = field(default_factory=list)

    @property
    def creates(self) -> list[Action]:
        return [a for a in self.actions.values() if a.kind is ActionKind.CREATE]

    @property
    def updates(self) -> list[Action]:
        return [a for a in self.actions.values() if a.kind is ActionKind.UPDATE]

    @property
    def is_converged(self) -> bool:
        return not self.actions and not self.orphans


@dataclass
class RunStats:
    """Per-destination counters for one run. Thread-safe."""

    alerts_created: int = 0
    alerts_to_be_created: int = 0
    alerts_updated: int = 0
    alerts_to_be_updated: int = 0
    alerts_deleted: int = 0
    alerts_to_be_deleted: int = 0
    alerts_silenced: int = 0
    api_successes: int = 0
    api_client_errors: int = 0
    api_unknown_errors: int = 0
    manually_created_alerts: int = 0
    api_errors: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def incr(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def record_error(self, message: str) -> None:
        with self._lock:
            self.api_errors.append(message)

    def counters(self) -> dict[str, int]:
        """Snapshot of the integer counters."""
        with self._lock:
            return {
                f.name: getattr(self, f.name)
                for f in fields(self)
                if f.type in ("int", int)
            }


__all__ = [
    "HostContext",
    "freeze_host",
    "AppliesState",
    "normalize_silenced",
    "normalize_thresholds",
    "NotifyPolicy",
    "AlertInstance",
    "DesiredAlert",
    "RemoteAlert",
    "ActionKind",
    "Action",
    "Orphan",
    "ReconcilePlan",
    "RunStats",
]
