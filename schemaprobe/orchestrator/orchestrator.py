"""High-level orchestration of a schema test run.

A run parses the request body, performs the request, resolves the version,
compiles the schema and validates the response payload. Every failure is
converted into a :class:`TestResult`; nothing raised inside a stage escapes
:func:`run`.
"""

from __future__ import annotations

import inspect
import json
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence

from schemaprobe.dsl.compiler import CompileError, compile as compile_schema
from schemaprobe.resolver.resolver import (
    HttpDeclarationFetcher,
    UnknownVersionError,
    VersionResolver,
    default_resolver,
)
from schemaprobe.telemetry import exporters, hooks, metrics
from schemaprobe.telemetry.logger import get_logger
from schemaprobe.utils import config as config_loader
from schemaprobe.validator.base import ValidationError
from schemaprobe.validator.executor import validate

from .request_client import RequestClient, RequestFailure, RequestFailureKind
from .types import BODY_METHODS, BatchResult, ProbeConfig, RunContext, SchemaEntry, TestResult

_LOGGER = get_logger("schemaprobe.orchestrator")

NO_ENDPOINT_MESSAGE = "No endpoint URL specified"
NO_ENDPOINT_BATCH_MESSAGE = "No endpoint URL specified for this schema"
NO_RESPONSE_MESSAGE = "API request failed: no response received from server"

# The body never parsed (or was never looked at) for these outcomes.
_UNPERSISTED_OUTCOMES = frozenset({"invalid_endpoint", "body_parse_error"})

Explainer = Callable[[str, Sequence[ValidationError], Any], Any]


class BodyParseError(ValueError):
    """The request body text is not valid JSON."""


def load_configuration(
    config_path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> ProbeConfig:
    """Return a :class:`ProbeConfig` from ``config_path`` and overrides."""

    data: Mapping[str, Any] | None = None
    if config_path is not None:
        data = config_loader.load_config(config_path)
    config = ProbeConfig.from_mapping(data)
    return config.merge(overrides)


def configure_telemetry(config: ProbeConfig) -> exporters.Exporter:
    """Install the metric exporter selected by ``config.telemetry``."""

    exporter: exporters.Exporter
    if config.telemetry.export_path:
        exporter = exporters.JsonlExporter(config.telemetry.export_path)
    else:
        exporter = exporters.MemoryExporter()
    exporters.configure(exporter)
    return exporter


def build_context(
    config: ProbeConfig | None = None,
    *,
    save_request_body: Callable[[str], Any] | None = None,
) -> RunContext:
    """Create a :class:`RunContext` whose collaborators follow ``config``."""

    config = config or ProbeConfig()
    fetcher = None
    if config.resolver.fetch_declarations:
        fetcher = HttpDeclarationFetcher(
            config.resolver.url_template, timeout=config.resolver.fetch_timeout
        )
    return RunContext(
        config=config,
        request_client=RequestClient(config.request),
        resolver=VersionResolver(fetcher=fetcher),
        save_request_body=save_request_body,
    )


def parse_request_body(method: str, body: str | None) -> Any:
    """Return the parsed JSON body for body-carrying methods, else ``None``.

    Raises :class:`BodyParseError` when the text does not parse.
    """

    if method.upper() not in BODY_METHODS or not body or not body.strip():
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise BodyParseError(str(exc)) from exc
    except RecursionError:
        raise BodyParseError("JSON nesting is too deep") from None


async def run(
    schema_source: str,
    version: str | None,
    endpoint: str,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    body: str | None = None,
    context: RunContext | None = None,
) -> TestResult:
    """Request ``endpoint`` and validate the response payload against ``schema_source``."""

    ctx = context or RunContext()
    verb = (method or "GET").upper()
    started = time.perf_counter()
    try:
        result = await _run_stages(ctx, schema_source, version, endpoint, verb, headers, body)
    except Exception as exc:
        _LOGGER.exception("run aborted | endpoint=%s", endpoint)
        result = TestResult(
            success=False, message=f"Unexpected error: {exc}", outcome="internal_error"
        )
    result.duration_ms = (time.perf_counter() - started) * 1000.0

    metrics.emit(
        "schemaprobe.run.duration_ms", result.duration_ms, tags={"outcome": result.outcome}
    )
    _LOGGER.info(
        "run completed | outcome=%s success=%s status=%s message=%s",
        result.outcome,
        result.success,
        result.response_status,
        result.message,
    )
    hooks.dispatch(
        hooks.ORCHESTRATOR_RUN_COMPLETED,
        {
            "endpoint": endpoint,
            "method": verb,
            "outcome": result.outcome,
            "success": result.success,
            "duration_ms": result.duration_ms,
        },
    )
    if (
        verb in BODY_METHODS
        and body
        and body.strip()
        and result.outcome not in _UNPERSISTED_OUTCOMES
    ):
        await _persist_body(ctx, body)
    return result


async def _run_stages(
    ctx: RunContext,
    schema_source: str,
    version: str | None,
    endpoint: str,
    verb: str,
    headers: Mapping[str, str] | None,
    body: str | None,
) -> TestResult:
    if not endpoint or not endpoint.strip():
        return TestResult(success=False, message=NO_ENDPOINT_MESSAGE, outcome="invalid_endpoint")

    try:
        parsed_body = parse_request_body(verb, body)
    except BodyParseError as exc:
        return TestResult(
            success=False,
            message=f"Invalid JSON in request body: {exc}",
            outcome="body_parse_error",
        )

    client = ctx.request_client or RequestClient(ctx.config.request)
    response = await client.execute(endpoint.strip(), verb, headers, parsed_body)
    if isinstance(response, RequestFailure):
        if response.kind is RequestFailureKind.NO_RESPONSE:
            return TestResult(success=False, message=NO_RESPONSE_MESSAGE, outcome="no_response")
        return TestResult(
            success=False,
            message=response.detail or "Request could not be sent",
            outcome="setup_error",
        )
    metrics.emit(
        "schemaprobe.request.latency_ms", response.elapsed_ms, tags={"status": str(response.status)}
    )

    def _with_response(**fields: Any) -> TestResult:
        return TestResult(
            response_status=response.status,
            response_status_text=response.status_text,
            response_headers=dict(response.headers),
            data=response.data,
            **fields,
        )

    resolver = ctx.resolver or default_resolver()
    target_version = version or ctx.config.resolver.default_version
    try:
        binding = await resolver.resolve(target_version)
    except UnknownVersionError as exc:
        return _with_response(success=False, message=str(exc), outcome="unknown_version")
    try:
        compiled = compile_schema(schema_source, binding)
    except CompileError as exc:
        return _with_response(success=False, message=str(exc), outcome="compile_error")

    validation = validate(compiled, response.data, unknown_keys=ctx.config.validator.unknown_keys)
    metrics.emit("schemaprobe.validation.errors", len(validation.errors))
    if validation.is_valid:
        message = "Schema test passed"
    else:
        message = f"Schema test failed: {len(validation.errors)} error(s)"
    return _with_response(
        success=True, message=message, outcome="validated", validation_result=validation
    )


async def _persist_body(ctx: RunContext, body: str) -> None:
    callback = ctx.save_request_body
    if callback is None:
        return
    try:
        outcome = callback(body)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as exc:
        _LOGGER.warning("saving request body failed | error=%s", exc)


async def run_many(
    entries: Iterable[SchemaEntry | Mapping[str, Any]],
    version: str | None = None,
    context: RunContext | None = None,
) -> list[BatchResult]:
    """Run stored schemas one after another with ``GET`` and no body."""

    ctx = context or RunContext()
    results: list[BatchResult] = []
    for raw in entries:
        entry = raw if isinstance(raw, SchemaEntry) else SchemaEntry.from_mapping(raw)
        if not entry.endpoint:
            result = TestResult(
                success=False, message=NO_ENDPOINT_BATCH_MESSAGE, outcome="invalid_endpoint"
            )
        else:
            result = await run(
                entry.source, version, entry.endpoint, "GET", entry.headers, None, ctx
            )
        results.append(BatchResult(name=entry.name, result=result))
    return results


async def explain(
    explainer: Explainer,
    schema_source: str,
    errors: Sequence[ValidationError],
    data: Any,
) -> Any:
    """Invoke an explanation collaborator and return its answer untouched."""

    try:
        answer = explainer(schema_source, errors, data)
        if inspect.isawaitable(answer):
            answer = await answer
    except Exception as exc:
        _LOGGER.warning("explanation failed | error=%s", exc)
        return {"success": False, "error": str(exc)}
    return answer


__all__ = [
    "BodyParseError",
    "Explainer",
    "NO_ENDPOINT_BATCH_MESSAGE",
    "NO_ENDPOINT_MESSAGE",
    "NO_RESPONSE_MESSAGE",
    "build_context",
    "configure_telemetry",
    "explain",
    "load_configuration",
    "parse_request_body",
    "run",
    "run_many",
]
