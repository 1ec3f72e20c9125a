"""Metrics, exporters and hooks emitted by the engine."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from schemaprobe.dsl.compiler import CompileError, compile
from schemaprobe.orchestrator import orchestrator
from schemaprobe.resolver.resolver import VersionResolver
from schemaprobe.telemetry import exporters, hooks, metrics


@pytest.fixture
def memory_exporter():
    previous = exporters.active()
    exporter = exporters.MemoryExporter()
    exporters.configure(exporter)
    metrics.get_registry().reset()
    try:
        yield exporter
    finally:
        exporters.configure(previous)
        metrics.get_registry().reset()


def test_compile_failures_are_counted(memory_exporter):
    binding = asyncio.run(VersionResolver().resolve("3.24.2"))
    with pytest.raises(CompileError):
        compile("w.string()", binding)

    samples = memory_exporter.samples("schemaprobe.compile.failures")
    assert len(samples) == 1
    assert samples[0].kind == "counter"
    assert samples[0].tags == {"kind": "RuntimeReference"}
    series = metrics.get_registry().get_series("schemaprobe.compile.failures")
    assert series is not None and series.total() == 1.0


def test_declaration_fetches_are_counted(memory_exporter):
    async def fetcher(version: str) -> str:
        return "declare const z: unknown;"

    resolver = VersionResolver(fetcher=fetcher)
    asyncio.run(resolver.resolve("3.22.0"))
    asyncio.run(resolver.resolve("3.22.0"))
    assert len(memory_exporter.samples("schemaprobe.resolver.fetches")) == 1


def test_summary_reports_catalog_metadata(memory_exporter):
    metrics.emit("schemaprobe.request.latency_ms", 12.5)
    metrics.emit("schemaprobe.request.latency_ms", 7.5)
    summary = metrics.get_registry().summaries()["schemaprobe.request.latency_ms"]
    assert summary["count"] == 2
    assert summary["avg"] == 10.0
    assert summary["unit"] == "milliseconds"


def test_jsonl_exporter_appends_records(tmp_path: Path):
    path = tmp_path / "metrics" / "samples.jsonl"
    exporter = exporters.JsonlExporter(path)
    previous = exporters.active()
    exporters.configure(exporter)
    try:
        metrics.emit("schemaprobe.validation.errors", 3)
    finally:
        exporters.configure(previous)
    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert records[0]["name"] == "schemaprobe.validation.errors"
    assert records[0]["value"] == 3.0


def test_failing_hook_does_not_break_dispatch():
    received = []

    def broken(event):
        raise RuntimeError("observer bug")

    with hooks.register_hook("custom.event", broken), hooks.register_hook(
        "custom.event", received.append
    ):
        hooks.dispatch("custom.event", {"value": 1})
    assert [event.payload["value"] for event in received] == [1]


def test_hook_registration_validates_arguments():
    with pytest.raises(ValueError):
        hooks.register_hook("", lambda event: None)
    with pytest.raises(TypeError):
        hooks.register_hook("custom.event", "not callable")


def test_configured_export_path_selects_jsonl_exporter(tmp_path: Path):
    path = tmp_path / "samples.jsonl"
    config = orchestrator.load_configuration(
        overrides={"telemetry": {"export_path": str(path)}}
    )
    previous = exporters.active()
    try:
        exporter = orchestrator.configure_telemetry(config)
        assert isinstance(exporter, exporters.JsonlExporter)
        metrics.emit("schemaprobe.validation.errors", 1)
    finally:
        exporters.configure(previous)
    assert json.loads(path.read_text(encoding="utf-8"))["name"] == "schemaprobe.validation.errors"


def test_default_configuration_keeps_samples_in_memory():
    previous = exporters.active()
    try:
        exporter = orchestrator.configure_telemetry(orchestrator.load_configuration())
        assert isinstance(exporter, exporters.MemoryExporter)
    finally:
        exporters.configure(previous)
