"""
Registries mapping configured ``type`` keys to component classes.

Four registries exist: host sources, group sources, alert sources and
destinations. Built-in components register with a decorator when their module
is imported; the registries import the built-in modules lazily on first
lookup, so logging is configured before registration messages are emitted::

    @host_sources.register("optica")
    class OpticaHostSource:
        def __init__(self, options: dict, context: ComponentContext): ...

``build_components`` applies the loader rules to a list of
``ComponentSpec`` entries: untyped entries are skipped with a warning,
disabled ones with an info line, and unknown keys fail fast with
``UnknownComponentError``.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from alert_spine.core.errors import UnknownComponentError
from alert_spine.core.logging import get_logger
from alert_spine.execution.cancellation import ShutdownToken

if TYPE_CHECKING:
    from alert_spine.core.config import ComponentSpec
    from alert_spine.core.settings import AlertSpineSettings

logger = get_logger(__name__)

T = TypeVar("T")

BUILTIN_MODULES = (
    "alert_spine.alerts.sources",
    "alert_spine.sources.groups.filesystem",
    "alert_spine.sources.hosts.optica",
    "alert_spine.sources.hosts.optica_services",
    "alert_spine.sources.hosts.aws",
    "alert_spine.providers.datadog",
)


@dataclass
class ComponentContext:
    """Run-level facts every component factory may need."""

    repo_path: Path = field(default_factory=Path.cwd)
    dry_run: bool = False
    shutdown: ShutdownToken = field(default_factory=ShutdownToken)
    settings: AlertSpineSettings | None = None

    def resolve_path(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return (self.repo_path / candidate).resolve()


Factory = Callable[[dict[str, Any], ComponentContext], Any]


class ComponentRegistry(Generic[T]):
    """Name → factory map for one kind of component."""

    def __init__(self, kind: str):
        self.kind = kind
        self._factories: dict[str, Factory] = {}

    def register(self, key: str) -> Callable[[Factory], Factory]:
        """Decorator registering a class or factory function under ``key``."""

        def decorator(factory: Factory) -> Factory:
            if key in self._factories:
                raise ValueError(f"{self.kind} '{key}' is already registered")
            self._factories[key] = factory
            logger.debug("component_registered", kind=self.kind, key=key)
            return factory

        return decorator

    def get(self, key: str) -> Factory:
        _ensure_loaded()
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownComponentError(self.kind, key, self.keys())
        return factory

    def create(self, key: str, options: dict[str, Any], context: ComponentContext) -> T:
        return self.get(key)(options, context)

    def keys(self) -> list[str]:
        _ensure_loaded()
        return sorted(self._factories)

    def snapshot(self) -> dict[str, Factory]:
        return dict(self._factories)

    def restore(self, factories: dict[str, Factory]) -> None:
        """Replace the registered factories (for testing)."""
        self._factories = dict(factories)

    def __contains__(self, key: str) -> bool:
        _ensure_loaded()
        return key in self._factories


host_sources: ComponentRegistry[Any] = ComponentRegistry("host source")
group_sources: ComponentRegistry[Any] = ComponentRegistry("group source")
alert_sources: ComponentRegistry[Any] = ComponentRegistry("alert source")
destinations: ComponentRegistry[Any] = ComponentRegistry("destination")

_loaded = False


def _ensure_loaded() -> None:
    """Import the built-in component modules once."""
    global _loaded
    if _loaded:
        return
    _loaded = True
    for module in BUILTIN_MODULES:
        importlib.import_module(module)
    logger.debug(
        "component_registry_loaded",
        host_sources=len(host_sources._factories),
        group_sources=len(group_sources._factories),
        alert_sources=len(alert_sources._factories),
        destinations=len(destinations._factories),
    )


def build_components(
    registry: ComponentRegistry[T],
    specs: list[ComponentSpec],
    context: ComponentContext,
) -> list[T]:
    """Instantiate every enabled, typed entry of ``specs`` in order."""
    instances: list[T] = []
    for idx, spec in enumerate(specs):
        if not spec.type:
            logger.warning("component_missing_type", kind=registry.kind, index=idx)
            continue
        if not spec.enabled:
            logger.info("component_disabled", kind=registry.kind, type=spec.type)
            continue
        instances.append(registry.create(spec.type, dict(spec.options), context))
    return instances


__all__ = [
    "ComponentContext",
    "ComponentRegistry",
    "host_sources",
    "group_sources",
    "alert_sources",
    "destinations",
    "build_components",
]
