"""Component registries for pluggable sources and destinations."""

from alert_spine.framework.registry import (
    ComponentContext,
    ComponentRegistry,
    alert_sources,
    build_components,
    destinations,
    group_sources,
    host_sources,
)

__all__ = [
    "ComponentContext",
    "ComponentRegistry",
    "alert_sources",
    "build_components",
    "destinations",
    "group_sources",
    "host_sources",
]
