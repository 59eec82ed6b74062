"""In-process run metrics.

A run publishes gauges and histograms (statsd-style dotted names) describing
what it read, evaluated and synced. The registry is process-local; the CLI
prints a snapshot at the end of a run and exporters can call
``MetricsRegistry.collect()`` / ``export_text()``.

Example:
    >>> from alert_spine.observability.metrics import gauge, histogram
    >>> gauge("hosts.count").labels(source="optica").set(120)
    >>> histogram("destinations.run_time").labels(destination="datadog").observe(3.4)
"""

from __future__ import annotations

import threading
from typing import Any

Labels = tuple[tuple[str, str], ...]


def _labels(values: dict[str, Any]) -> Labels:
    return tuple(sorted((k, str(v)) for k, v in values.items()))


class _Metric:
    kind = "metric"

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._lock = threading.Lock()

    def collect(self) -> list[dict[str, Any]]:
        raise NotImplementedError


class Gauge(_Metric):
    """Last-written value per label set."""

    kind = "gauge"

    def __init__(self, name: str, description: str = ""):
        super().__init__(name, description)
        self._values: dict[Labels, float] = {}

    def labels(self, **kwargs: Any) -> GaugeChild:
        return GaugeChild(self, _labels(kwargs))

    def set(self, value: float) -> None:
        self.labels().set(value)

    def value(self, **kwargs: Any) -> float:
        with self._lock:
            return self._values.get(_labels(kwargs), 0.0)

    def _set(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = float(value)

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"name": self.name, "type": self.kind, "labels": dict(labels), "value": value}
                for labels, value in self._values.items()
            ]


class GaugeChild:
    """Gauge bound to one label set."""

    def __init__(self, gauge: Gauge, labels: Labels):
        self._gauge = gauge
        self._labels = labels

    def set(self, value: float) -> None:
        self._gauge._set(self._labels, value)


class Histogram(_Metric):
    """Count, sum and max of observations per label set."""

    kind = "histogram"

    def __init__(self, name: str, description: str = ""):
        super().__init__(name, description)
        self._data: dict[Labels, dict[str, float]] = {}

    def labels(self, **kwargs: Any) -> HistogramChild:
        return HistogramChild(self, _labels(kwargs))

    def observe(self, value: float) -> None:
        self.labels().observe(value)

    def _observe(self, labels: Labels, value: float) -> None:
        with self._lock:
            data = self._data.setdefault(labels, {"count": 0, "sum": 0.0, "max": value})
            data["count"] += 1
            data["sum"] += value
            data["max"] = max(data["max"], value)

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"name": self.name, "type": self.kind, "labels": dict(labels), **data}
                for labels, data in self._data.items()
            ]


class HistogramChild:
    """Histogram bound to one label set."""

    def __init__(self, histogram: Histogram, labels: Labels):
        self._histogram = histogram
        self._labels = labels

    def observe(self, value: float) -> None:
        self._histogram._observe(self._labels, value)


class MetricsRegistry:
    """Registry of all metrics for collection and export."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, cls: type[_Metric], name: str, description: str) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = cls(name, description)
                self._metrics[name] = metric
            elif not isinstance(metric, cls):
                raise TypeError(f"Metric {name} already registered as {metric.kind}")
            return metric

    def gauge(self, name: str, description: str = "") -> Gauge:
        """Get or create a gauge."""
        return self._get_or_create(Gauge, name, description)

    def histogram(self, name: str, description: str = "") -> Histogram:
        """Get or create a histogram."""
        return self._get_or_create(Histogram, name, description)

    def collect(self) -> list[dict[str, Any]]:
        """Collect all metrics."""
        with self._lock:
            metrics = list(self._metrics.values())
        results = []
        for metric in metrics:
            results.extend(metric.collect())
        return results

    def export_text(self) -> str:
        """Render ``name{labels} value`` lines, one per series."""
        lines = []
        for data in self.collect():
            labels = data.get("labels") or {}
            label_str = "{" + ",".join(f'{k}="{v}"' for k, v in labels.items()) + "}" if labels else ""
            if data["type"] == "gauge":
                lines.append(f"{data['name']}{label_str} {data['value']}")
            else:
                lines.append(f"{data['name']}_count{label_str} {data['count']}")
                lines.append(f"{data['name']}_sum{label_str} {data['sum']}")
        return "\n".join(lines)

    def reset(self) -> None:
        """Drop every metric (for tests and between runs in one process)."""
        with self._lock:
            self._metrics.clear()


_default_registry = MetricsRegistry()


def get_metrics_registry() -> MetricsRegistry:
    """Get the default metrics registry."""
    return _default_registry


def gauge(name: str, description: str = "") -> Gauge:
    """Get or create a gauge from the default registry."""
    return _default_registry.gauge(name, description)


def histogram(name: str, description: str = "") -> Histogram:
    """Get or create a histogram from the default registry."""
    return _default_registry.histogram(name, description)


__all__ = [
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "get_metrics_registry",
    "gauge",
    "histogram",
]
