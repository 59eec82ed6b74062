"""Run metrics."""

from alert_spine.observability.metrics import (
    MetricsRegistry,
    gauge,
    get_metrics_registry,
    histogram,
)

__all__ = ["MetricsRegistry", "gauge", "get_metrics_registry", "histogram"]
