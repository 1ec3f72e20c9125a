"""Evaluate a parsed schema expression against a builder namespace.

Only the namespace root ``z`` resolves as a free identifier. Member access is
limited to constructors on ``z`` and whitelisted modifiers on schema values, so
the walk can never reach arbitrary Python attributes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from schemaprobe.resolver.namespaces import BuilderNamespace
from schemaprobe.validator.base import UNDEFINED, Schema, SchemaDefinitionError

from . import ast

NAMESPACE_ROOT = "z"

_REGEX_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


class DSLEvaluationError(RuntimeError):
    """Evaluation failure anchored to the node that caused it."""

    def __init__(self, message: str, span: ast.Span | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.span = span

    @property
    def line(self) -> int | None:
        return self.span.start_line if self.span else None

    @property
    def column(self) -> int | None:
        return self.span.start_column if self.span else None


class DSLReferenceError(DSLEvaluationError):
    """An identifier, constructor or modifier that does not exist for the version."""


@dataclass(frozen=True)
class _NamespaceRef:
    namespace: BuilderNamespace


@dataclass(frozen=True)
class _BuilderRef:
    name: str
    fn: Callable[..., Any]


@dataclass(frozen=True)
class _BoundModifier:
    name: str
    fn: Callable[..., Any]


def translate_regex(pattern: str, flags: str, span: ast.Span | None = None) -> re.Pattern[str]:
    """Compile a JavaScript regular expression literal into a Python pattern."""

    converted = pattern.replace("(?<", "(?P<").replace("(?P<=", "(?<=").replace("(?P<!", "(?<!")
    converted = re.sub(r"\\k<([A-Za-z_][A-Za-z0-9_]*)>", r"(?P=\1)", converted)
    compiled_flags = 0
    for flag in flags:
        compiled_flags |= _REGEX_FLAG_MAP.get(flag, 0)
    try:
        return re.compile(converted, compiled_flags)
    except re.error as exc:
        raise DSLEvaluationError(f"Invalid regular expression /{pattern}/: {exc}", span) from exc


class Interpreter:
    """Tree-walking evaluator for schema expressions."""

    def __init__(self, namespace: BuilderNamespace) -> None:
        self.namespace = namespace

    def evaluate(self, node: ast.Node) -> Any:
        value = self._eval(node)
        if isinstance(value, (_NamespaceRef, _BuilderRef, _BoundModifier)):
            raise DSLEvaluationError(
                f"'{ast.describe(node)}' must be called to produce a schema", node.span
            )
        return value

    def _eval(self, node: ast.Node) -> Any:
        if isinstance(node, ast.Literal):
            return UNDEFINED if node.literal_type == "undefined" else node.value
        if isinstance(node, ast.Identifier):
            if node.name == NAMESPACE_ROOT:
                return _NamespaceRef(self.namespace)
            raise DSLReferenceError(f"{node.name} is not defined", node.span)
        if isinstance(node, ast.RegexLiteral):
            return translate_regex(node.pattern, node.flags, node.span)
        if isinstance(node, ast.ArrayLiteral):
            return [self.evaluate(element) for element in node.elements]
        if isinstance(node, ast.ObjectLiteral):
            return {prop.key: self.evaluate(prop.value) for prop in node.properties}
        if isinstance(node, ast.Member):
            return self._member(node)
        if isinstance(node, ast.Call):
            return self._call(node)
        raise DSLEvaluationError(f"Unsupported expression {node.node_type}", node.span)

    def _member(self, node: ast.Member) -> Any:
        target = self._eval(node.target)
        if isinstance(target, _NamespaceRef):
            fn = target.namespace.constructor(node.name)
            if fn is None:
                raise DSLReferenceError(
                    f"z.{node.name} is not available in version {target.namespace.version}",
                    node.span,
                )
            return _BuilderRef(node.name, fn)
        if isinstance(target, Schema):
            bound = self.namespace.modifier(target, node.name)
            if bound is None:
                raise DSLReferenceError(
                    f"'{node.name}' is not a {target.kind} schema method in version "
                    f"{self.namespace.version}",
                    node.span,
                )
            return _BoundModifier(node.name, bound)
        if isinstance(target, (_BuilderRef, _BoundModifier)):
            raise DSLReferenceError(
                f"'{ast.describe(node.target)}' has no property '{node.name}'", node.span
            )
        raise DSLReferenceError(
            f"Cannot read property '{node.name}' of {ast.describe(node.target)}", node.span
        )

    def _call(self, node: ast.Call) -> Any:
        callee = self._eval(node.callee)
        if not isinstance(callee, (_BuilderRef, _BoundModifier)):
            raise DSLEvaluationError(f"{ast.describe(node.callee)} is not a function", node.span)
        arguments = [self.evaluate(argument) for argument in node.arguments]
        try:
            return callee.fn(*arguments)
        except SchemaDefinitionError as exc:
            raise DSLEvaluationError(str(exc), node.span) from exc
        except TypeError as exc:
            raise DSLEvaluationError(
                f"Invalid arguments for {callee.name}(): {exc}", node.span
            ) from exc


def evaluate(node: ast.Node, namespace: BuilderNamespace) -> Any:
    return Interpreter(namespace).evaluate(node)


__all__ = [
    "DSLEvaluationError",
    "DSLReferenceError",
    "Interpreter",
    "NAMESPACE_ROOT",
    "evaluate",
    "translate_regex",
]
