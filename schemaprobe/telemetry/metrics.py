"""In-process metrics registry for schemaprobe runs."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from . import exporters


@dataclass(frozen=True)
class MetricSample:
    """Immutable record representing a single metric observation."""

    name: str
    value: float
    timestamp: float
    kind: str
    tags: Mapping[str, str]
    extra: Mapping[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "timestamp": self.timestamp,
            "kind": self.kind,
        }
        if self.tags:
            payload["tags"] = dict(self.tags)
        if self.extra:
            payload["extra"] = dict(self.extra)
        return payload


@dataclass
class MetricSeries:
    """Samples recorded under one metric name."""

    name: str
    kind: str
    description: str | None = None
    unit: str | None = None
    samples: list[MetricSample] = field(default_factory=list)

    def add_sample(self, sample: MetricSample) -> None:
        self.samples.append(sample)

    def total(self) -> float:
        return sum(sample.value for sample in self.samples)

    def summary(self) -> Dict[str, Any]:
        if not self.samples:
            return {"name": self.name, "kind": self.kind, "count": 0}
        values = [item.value for item in self.samples]
        summary: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind,
            "count": len(values),
            "avg": sum(values) / len(values),
            "min": min(values),
            "max": max(values),
            "last": self.samples[-1].to_dict(),
        }
        if self.description:
            summary["description"] = self.description
        if self.unit:
            summary["unit"] = self.unit
        return summary


class MetricsRegistry:
    """Thread-safe registry storing metric series in-memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._series: Dict[str, MetricSeries] = {}

    def emit(
        self,
        name: str,
        value: Any,
        *,
        kind: str | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> MetricSample:
        if not isinstance(name, str) or not name:
            raise ValueError("metric name must be a non-empty string")
        numeric_value = _coerce_value(value)
        inferred = _METRIC_CATALOG.get(name, {})
        metric_kind = kind or inferred.get("kind", "gauge")
        description = inferred.get("description")
        unit = inferred.get("unit")
        extra: Dict[str, Any] = {}
        if description:
            extra["description"] = description
        if unit:
            extra["unit"] = unit
        sample = MetricSample(
            name=name,
            value=numeric_value,
            timestamp=time.time(),
            kind=metric_kind,
            tags=dict(tags or {}),
            extra=extra,
        )
        with self._lock:
            series = self._series.get(name)
            if series is None:
                series = MetricSeries(
                    name=name, kind=metric_kind, description=description, unit=unit
                )
                self._series[name] = series
            series.add_sample(sample)
        exporters.export(sample)
        return sample

    def get_series(self, name: str) -> MetricSeries | None:
        with self._lock:
            series = self._series.get(name)
            if series is None:
                return None
            return MetricSeries(
                name=series.name,
                kind=series.kind,
                description=series.description,
                unit=series.unit,
                samples=list(series.samples),
            )

    def summaries(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: series.summary() for name, series in self._series.items()}

    def reset(self) -> None:
        with self._lock:
            self._series.clear()


_METRIC_CATALOG: Dict[str, Dict[str, Any]] = {
    "schemaprobe.resolver.fetches": {
        "kind": "counter",
        "description": "Declaration fetches performed while resolving a version",
        "unit": "count",
    },
    "schemaprobe.compile.failures": {
        "kind": "counter",
        "description": "Schema sources rejected by the compiler",
        "unit": "count",
    },
    "schemaprobe.request.latency_ms": {
        "kind": "gauge",
        "description": "Wall clock latency of the request under test",
        "unit": "milliseconds",
    },
    "schemaprobe.validation.errors": {
        "kind": "gauge",
        "description": "Violations reported by the last validation",
        "unit": "count",
    },
    "schemaprobe.run.duration_ms": {
        "kind": "gauge",
        "description": "Wall clock latency of a full orchestrated run",
        "unit": "milliseconds",
    },
    "schemaprobe.samples.generated": {
        "kind": "counter",
        "description": "Sample payloads produced by the generator",
        "unit": "count",
    },
}


_REGISTRY = MetricsRegistry()


def emit(
    metric: str,
    value: Any,
    *,
    kind: str | None = None,
    tags: Mapping[str, str] | None = None,
) -> MetricSample:
    """Record ``value`` for ``metric`` and forward to the configured exporter."""

    return _REGISTRY.emit(metric, value, kind=kind, tags=tags)


def get_registry() -> MetricsRegistry:
    """Return the process-wide metrics registry."""

    return _REGISTRY


def _coerce_value(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as exc:
            raise TypeError(f"metric value for {value!r} must be numeric") from exc
    raise TypeError(f"metric value for {value!r} must be numeric")


__all__ = [
    "MetricSample",
    "MetricSeries",
    "MetricsRegistry",
    "emit",
    "get_registry",
]
