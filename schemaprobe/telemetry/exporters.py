"""Metric exporters for schemaprobe telemetry."""

from __future__ import annotations

import json
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:  # pragma: no cover - imported only for typing
    from .metrics import MetricSample


class Exporter(Protocol):
    """Protocol implemented by all metric exporters."""

    def export(self, sample: "MetricSample") -> None:  # pragma: no cover - interface definition
        ...


class MemoryExporter:
    """Keep the most recent samples in memory; the default exporter."""

    def __init__(self, limit: int = 1024) -> None:
        self._lock = RLock()
        self._limit = max(1, int(limit))
        self._samples: list["MetricSample"] = []

    def export(self, sample: "MetricSample") -> None:
        with self._lock:
            self._samples.append(sample)
            overflow = len(self._samples) - self._limit
            if overflow > 0:
                del self._samples[:overflow]

    def samples(self, name: str | None = None) -> list["MetricSample"]:
        with self._lock:
            if name is None:
                return list(self._samples)
            return [sample for sample in self._samples if sample.name == name]

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()


class JsonlExporter:
    """Append metric samples to a JSONL file on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()

    def export(self, sample: "MetricSample") -> None:
        record = sample.to_dict()
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                json.dump(record, handle, ensure_ascii=False, sort_keys=True)
                handle.write("\n")


_EXPORTER: Exporter = MemoryExporter()


def configure(exporter: Exporter) -> None:
    """Override the global exporter used by :func:`export`."""

    global _EXPORTER
    _EXPORTER = exporter


def active() -> Exporter:
    return _EXPORTER


def export(sample: "MetricSample") -> None:
    """Forward ``sample`` to the active exporter."""

    _EXPORTER.export(sample)


__all__ = ["Exporter", "JsonlExporter", "MemoryExporter", "active", "configure", "export"]
