"""Compile schema source text into an executable schema for one version."""

from __future__ import annotations

import enum
from typing import Any, TYPE_CHECKING

from schemaprobe.telemetry import metrics
from schemaprobe.telemetry.logger import get_logger
from schemaprobe.validator.base import CompiledSchema, Schema, describe_type

from .grammar import DSLParseError, parse_expression
from .interpreter import DSLEvaluationError, DSLReferenceError, Interpreter

if TYPE_CHECKING:
    from schemaprobe.resolver.resolver import VersionBinding

_LOGGER = get_logger("schemaprobe.compiler")


class CompileErrorKind(str, enum.Enum):
    SYNTAX = "Syntax"
    UNKNOWN_VERSION = "UnknownVersion"
    RUNTIME_REFERENCE = "RuntimeReference"


class CompileError(Exception):
    """Structured compile failure; ``line``/``column`` are 1-based when known."""

    def __init__(
        self,
        kind: CompileErrorKind,
        message: str,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


def _fail(
    kind: CompileErrorKind, message: str, line: int | None, column: int | None
) -> CompileError:
    metrics.emit("schemaprobe.compile.failures", 1, tags={"kind": kind.value})
    _LOGGER.info("compile failed | kind=%s line=%s message=%s", kind.value, line, message)
    return CompileError(kind, message, line, column)


def compile(source: str, binding: "VersionBinding") -> CompiledSchema:
    """Compile ``source`` against ``binding`` and return the executable schema.

    Raises :class:`CompileError` with kind ``Syntax`` for malformed text, bad
    builder arguments or a non-schema result, and ``RuntimeReference`` for
    identifiers, constructors or modifiers the version does not provide.
    """

    if not isinstance(source, str):
        raise _fail(CompileErrorKind.SYNTAX, "Schema source must be a string", 1, 1)
    try:
        tree = parse_expression(source)
        value = Interpreter(binding.namespace).evaluate(tree)
    except DSLParseError as exc:
        raise _fail(CompileErrorKind.SYNTAX, exc.message, exc.line, exc.column) from exc
    except DSLReferenceError as exc:
        raise _fail(
            CompileErrorKind.RUNTIME_REFERENCE, exc.message, exc.line or 1, exc.column or 1
        ) from exc
    except DSLEvaluationError as exc:
        raise _fail(CompileErrorKind.SYNTAX, exc.message, exc.line or 1, exc.column or 1) from exc
    except RecursionError as exc:
        raise _fail(CompileErrorKind.SYNTAX, "Schema expression is nested too deeply", 1, 1) from exc
    if not isinstance(value, Schema):
        span = tree.span
        raise _fail(
            CompileErrorKind.SYNTAX,
            f"Schema must evaluate to a schema, got {describe_type(value)}",
            span.start_line if span else 1,
            span.start_column if span else 1,
        )
    return CompiledSchema(schema=value, version=binding.version, source=source)


__all__ = ["CompileError", "CompileErrorKind", "compile"]
