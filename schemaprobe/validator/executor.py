"""Run payloads through compiled schemas and normalise the outcome."""

from __future__ import annotations

from typing import Any

from schemaprobe.telemetry.logger import get_logger

from .base import (
    UNKNOWN_KEY_POLICIES,
    CompiledSchema,
    Schema,
    ValidationContext,
    ValidationError,
    ValidationResult,
)

_LOGGER = get_logger("schemaprobe.validator")

DEFAULT_UNKNOWN_KEYS = "strip"


def validate(
    schema: CompiledSchema | Schema,
    data: Any,
    *,
    unknown_keys: str | None = None,
) -> ValidationResult:
    """Validate ``data`` against ``schema`` and collect every violation.

    The traversal is depth-first and never stops at the first failure.
    ``unknown_keys`` selects how undeclared object fields are treated for
    objects that do not set their own policy: ``"strip"`` (ignore, the
    default), ``"passthrough"`` (ignore) or ``"strict"`` (report). This
    function never raises; an internal failure is reported as a single
    root-level error.
    """

    policy = unknown_keys or DEFAULT_UNKNOWN_KEYS
    if policy not in UNKNOWN_KEY_POLICIES:
        return ValidationResult(
            errors=(ValidationError(path=(), message=f"Unsupported unknown-key policy '{policy}'"),)
        )
    target = schema.schema if isinstance(schema, CompiledSchema) else schema
    if not isinstance(target, Schema):
        return ValidationResult(
            errors=(
                ValidationError(
                    path=(),
                    message=f"Schema evaluation error: {type(target).__name__} is not a schema",
                ),
            )
        )
    ctx = ValidationContext(policy)
    try:
        target.check(data, ctx)
    except Exception as exc:
        _LOGGER.exception("validation aborted | schema=%s", type(target).__name__)
        return ValidationResult(
            errors=(ValidationError(path=(), message=f"Schema evaluation error: {exc}"),)
        )
    return ValidationResult(errors=tuple(ctx.issues))


__all__ = ["DEFAULT_UNKNOWN_KEYS", "validate"]
