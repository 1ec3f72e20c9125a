"""Per-version builder namespaces.

Each supported library version maps to one :class:`BuilderNamespace`: the set
of constructors reachable as ``z.<name>(...)`` plus, per schema kind, the
modifier methods that may be chained onto a schema. The interpreter only ever
consults this table, so adding a version means adding one entry built from
the previous one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

from schemaprobe.validator import composites, primitives
from schemaprobe.validator.base import Schema

Constructor = Callable[..., Any]

# DSL spellings that are not valid Python attribute names.
_METHOD_ALIASES = {
    "or": "or_",
    "and": "and_",
    "removeDefault": "remove_default",
}

# Modifiers valid on every schema kind are stored under this key.
COMMON = "*"


@dataclass(frozen=True)
class BuilderNamespace:
    """Constructors and modifier whitelist available for one version."""

    version: str
    constructors: Mapping[str, Constructor]
    modifiers: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def constructor(self, name: str) -> Optional[Constructor]:
        return self.constructors.get(name)

    def allows(self, schema: Schema, name: str) -> bool:
        if name in self.modifiers.get(COMMON, ()):
            return True
        return name in self.modifiers.get(schema.kind, ())

    def modifier(self, schema: Schema, name: str) -> Optional[Callable[..., Any]]:
        """Return the bound modifier ``name`` of ``schema`` or ``None`` when unavailable."""

        if not self.allows(schema, name):
            return None
        return getattr(schema, _METHOD_ALIASES.get(name, name), None)

    def vocabulary(self) -> dict[str, list[str]]:
        """Return a sorted listing of constructors and modifiers (for ``versions`` output)."""

        listing = {"constructors": sorted(self.constructors)}
        for kind, names in sorted(self.modifiers.items()):
            label = "common" if kind == COMMON else kind
            listing[label] = sorted(names)
        return listing


_ALL_CONSTRUCTORS: dict[str, Constructor] = {**primitives.CONSTRUCTORS, **composites.CONSTRUCTORS}


def _extend(
    base: BuilderNamespace | None,
    version: str,
    constructors: Iterable[str] = (),
    modifiers: Mapping[str, Iterable[str]] | None = None,
) -> BuilderNamespace:
    names = set(base.constructors) if base is not None else set()
    names.update(constructors)
    merged: dict[str, set[str]] = {}
    if base is not None:
        for kind, existing in base.modifiers.items():
            merged[kind] = set(existing)
    for kind, added in (modifiers or {}).items():
        merged.setdefault(kind, set()).update(added)
    return BuilderNamespace(
        version=version,
        constructors=MappingProxyType({name: _ALL_CONSTRUCTORS[name] for name in sorted(names)}),
        modifiers=MappingProxyType({kind: frozenset(values) for kind, values in merged.items()}),
    )


_V3_18 = _extend(
    None,
    "3.18.0",
    constructors=(
        "string",
        "number",
        "boolean",
        "null",
        "undefined",
        "void",
        "date",
        "any",
        "unknown",
        "never",
        "literal",
        "enum",
        "object",
        "array",
        "tuple",
        "record",
        "union",
        "discriminatedUnion",
        "intersection",
        "optional",
        "nullable",
    ),
    modifiers={
        COMMON: ("optional", "nullable", "nullish", "default", "array", "or", "and", "describe"),
        "string": (
            "min",
            "max",
            "length",
            "nonempty",
            "email",
            "url",
            "uuid",
            "cuid",
            "regex",
            "startsWith",
            "endsWith",
            "trim",
        ),
        "number": (
            "min",
            "max",
            "gt",
            "gte",
            "lt",
            "lte",
            "int",
            "positive",
            "negative",
            "nonpositive",
            "nonnegative",
            "multipleOf",
        ),
        "array": ("min", "max", "length", "nonempty"),
        "object": (
            "strict",
            "passthrough",
            "strip",
            "catchall",
            "extend",
            "merge",
            "pick",
            "omit",
            "partial",
            "required",
            "keyof",
        ),
        "tuple": ("rest",),
        "optional": ("unwrap",),
        "nullable": ("unwrap",),
        "default": ("removeDefault",),
    },
)

_V3_20 = _extend(
    _V3_18,
    "3.20.0",
    constructors=("nan",),
    modifiers={
        "string": ("emoji", "cuid2", "datetime"),
        "number": ("step", "finite"),
    },
)

_V3_22 = _extend(
    _V3_20,
    "3.22.0",
    modifiers={
        COMMON: ("readonly",),
        "string": ("ip", "ulid", "includes", "toLowerCase", "toUpperCase"),
        "number": ("safe",),
        "enum": ("extract", "exclude"),
    },
)

_V3_24 = _extend(
    _V3_22,
    "3.24.2",
    modifiers={"string": ("base64", "date", "time", "duration", "nanoid")},
)

DEFAULT_VERSION = "3.24.2"

NAMESPACES: Mapping[str, BuilderNamespace] = MappingProxyType(
    {namespace.version: namespace for namespace in (_V3_24, _V3_22, _V3_20, _V3_18)}
)


def supported_versions() -> list[str]:
    """Supported version identifiers, newest first."""

    return list(NAMESPACES)


__all__ = [
    "BuilderNamespace",
    "COMMON",
    "DEFAULT_VERSION",
    "NAMESPACES",
    "supported_versions",
]
