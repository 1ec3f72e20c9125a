"""Core value types and the schema base class used by the validator.

Validation is a result-returning traversal: every schema node receives the
value under test plus a :class:`ValidationContext` that carries the current
path prefix and an accumulator of violations. Nodes append to the accumulator
and never raise for an expected violation, so a single pass reports every
problem in depth-first discovery order.
"""

from __future__ import annotations

import copy
import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar, Iterator, Mapping, Sequence, Union

PathKey = Union[str, int]

UNKNOWN_KEY_POLICIES = ("strip", "strict", "passthrough")


class _Undefined:
    """Marker for an absent value (a missing object field)."""

    _instance: "_Undefined | None" = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "_Undefined":
        return self


UNDEFINED = _Undefined()


class SchemaDefinitionError(ValueError):
    """Raised by builders when a schema is constructed with invalid arguments."""


@dataclass(frozen=True, slots=True)
class ValidationError:
    """A single violation located at ``path`` inside the validated payload."""

    path: tuple[PathKey, ...]
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": list(self.path), "message": self.message}


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of one validation; valid exactly when there are no errors."""

    errors: tuple[ValidationError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(frozen=True, slots=True)
class CompiledSchema:
    """Executable schema produced by the compiler for one library version."""

    schema: "Schema"
    version: str
    source: str


class ValidationContext:
    """Mutable path prefix plus violation accumulator threaded through a traversal."""

    __slots__ = ("path", "issues", "unknown_keys")

    def __init__(self, unknown_keys: str = "strip", path: Sequence[PathKey] = ()) -> None:
        if unknown_keys not in UNKNOWN_KEY_POLICIES:
            raise ValueError(
                f"unknown_keys must be one of {', '.join(UNKNOWN_KEY_POLICIES)}, got {unknown_keys!r}"
            )
        self.path: list[PathKey] = list(path)
        self.issues: list[ValidationError] = []
        self.unknown_keys = unknown_keys

    def add(self, message: str) -> None:
        self.issues.append(ValidationError(path=tuple(self.path), message=message))

    def invalid_type(self, expected: str, value: Any) -> None:
        received = describe_type(value)
        if received == "undefined":
            self.add("Required")
        else:
            self.add(f"Expected {expected}, received {received}")

    @contextmanager
    def at(self, key: PathKey) -> Iterator[None]:
        self.path.append(key)
        try:
            yield
        finally:
            self.path.pop()

    def branch(self) -> "ValidationContext":
        """Return an empty context rooted at the current path (for union branches)."""

        return ValidationContext(self.unknown_keys, self.path)

    def absorb(self, other: "ValidationContext") -> None:
        self.issues.extend(other.issues)


@dataclass(frozen=True, slots=True)
class Check:
    """Refinement attached to a primitive schema."""

    kind: str
    value: Any = None
    message: str | None = None


def describe_type(value: Any) -> str:
    """Name the runtime type of ``value`` the way error messages report it."""

    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "number"
    if isinstance(value, float):
        return "nan" if math.isnan(value) else "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, (set, frozenset)):
        return "set"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, date):
        return "date"
    if callable(value):
        return "function"
    return "object"


def format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer() and not math.isinf(value):
        return str(int(value))
    return str(value)


def message_argument(raw: Any) -> str | None:
    """Accept ``"text"`` or ``{message: "text"}`` as a custom error message."""

    if raw is None or raw is UNDEFINED:
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, Mapping) and isinstance(raw.get("message"), str):
        return raw["message"]
    raise SchemaDefinitionError("error message must be a string or { message: string }")


def require_number(name: str, raw: Any) -> float | int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise SchemaDefinitionError(f"{name}() expects a number, received {describe_type(raw)}")
    return raw


def require_schema(name: str, raw: Any) -> "Schema":
    if not isinstance(raw, Schema):
        raise SchemaDefinitionError(f"{name}() expects a schema, received {describe_type(raw)}")
    return raw


class Schema:
    """Base class for every schema node.

    Subclasses implement :meth:`check`. Modifier methods return new schema
    objects; instances are never mutated once built.
    """

    kind: ClassVar[str] = "schema"

    def __init__(self) -> None:
        self.description: str | None = None

    def check(self, value: Any, ctx: ValidationContext) -> None:
        raise NotImplementedError

    def _clone(self) -> "Schema":
        return copy.copy(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"

    # -- modifiers shared by every schema -----------------------------------

    def optional(self) -> "Schema":
        return OptionalSchema(self)

    def nullable(self) -> "Schema":
        return NullableSchema(self)

    def nullish(self) -> "Schema":
        return OptionalSchema(NullableSchema(self))

    def default(self, value: Any = UNDEFINED) -> "Schema":
        return DefaultSchema(self, value)

    def array(self) -> "Schema":
        from .composites import ArraySchema

        return ArraySchema(self)

    def or_(self, other: Any) -> "Schema":
        from .composites import UnionSchema

        return UnionSchema([self, require_schema("or", other)])

    def and_(self, other: Any) -> "Schema":
        from .composites import IntersectionSchema

        return IntersectionSchema(self, require_schema("and", other))

    def describe(self, text: Any) -> "Schema":
        if not isinstance(text, str):
            raise SchemaDefinitionError("describe() expects a string")
        clone = self._clone()
        clone.description = text
        return clone

    def readonly(self) -> "Schema":
        return self._clone()


class OptionalSchema(Schema):
    kind = "optional"

    def __init__(self, inner: Schema) -> None:
        super().__init__()
        self.inner = inner

    def unwrap(self) -> Schema:
        return self.inner

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is UNDEFINED:
            return
        self.inner.check(value, ctx)


class NullableSchema(Schema):
    kind = "nullable"

    def __init__(self, inner: Schema) -> None:
        super().__init__()
        self.inner = inner

    def unwrap(self) -> Schema:
        return self.inner

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is None:
            return
        self.inner.check(value, ctx)


class DefaultSchema(Schema):
    """Substitutes ``default_value`` for a missing value before checking."""

    kind = "default"

    def __init__(self, inner: Schema, default_value: Any) -> None:
        super().__init__()
        self.inner = inner
        self.default_value = default_value

    def remove_default(self) -> Schema:
        return self.inner

    def check(self, value: Any, ctx: ValidationContext) -> None:
        self.inner.check(self.default_value if value is UNDEFINED else value, ctx)


__all__ = [
    "UNDEFINED",
    "UNKNOWN_KEY_POLICIES",
    "Check",
    "CompiledSchema",
    "DefaultSchema",
    "NullableSchema",
    "OptionalSchema",
    "PathKey",
    "Schema",
    "SchemaDefinitionError",
    "ValidationContext",
    "ValidationError",
    "ValidationResult",
    "describe_type",
    "format_number",
    "message_argument",
    "require_number",
    "require_schema",
]
