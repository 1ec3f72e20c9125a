"""Abstract syntax tree for schema-builder expressions.

A schema source is a single expression such as
``z.object({ id: z.number().int(), tags: z.array(z.string()) })``. The node set
is closed: identifiers, literals, regex literals, array and object
literals, member access and calls. Nothing else can be expressed, so the
interpreter never has to reason about statements or side effects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Iterator, Optional, Sequence


@dataclass(slots=True)
class Span:
    """Start/end position of a node in the source text (1-based)."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def to_tuple(self) -> tuple[int, int, int, int]:
        return (self.start_line, self.start_column, self.end_line, self.end_column)


@dataclass(slots=True, kw_only=True)
class Node:
    """Base class for all AST nodes."""

    span: Optional[Span] = None

    @property
    def node_type(self) -> str:
        return self.__class__.__name__

    def children(self) -> Iterator["Node"]:
        """Yield child nodes in source order."""

        for spec in fields(self):
            if spec.name == "span":
                continue
            yield from _iter_possible_children(getattr(self, spec.name))

    def walk(self) -> Iterator["Node"]:
        """Depth-first traversal starting at this node."""

        yield self
        for child in self.children():
            yield from child.walk()


@dataclass(slots=True)
class Identifier(Node):
    """A free name; only the builder namespace root resolves."""

    name: str


@dataclass(slots=True)
class Literal(Node):
    """String, number, boolean, ``null`` or ``undefined`` literal.

    ``literal_type`` is one of ``"string"``, ``"number"``, ``"boolean"``,
    ``"null"`` and ``"undefined"``; ``value`` holds the Python value (``None``
    for both ``null`` and ``undefined``).
    """

    literal_type: str
    value: object


@dataclass(slots=True)
class RegexLiteral(Node):
    """``/pattern/flags`` as written in the source."""

    pattern: str
    flags: str = ""


@dataclass(slots=True)
class ArrayLiteral(Node):
    elements: list[Node] = field(default_factory=list)


@dataclass(slots=True)
class Property(Node):
    """``key: value`` entry of an object literal."""

    key: str
    value: Node


@dataclass(slots=True)
class ObjectLiteral(Node):
    properties: list[Property] = field(default_factory=list)


@dataclass(slots=True)
class Member(Node):
    """``target.name``."""

    target: Node
    name: str


@dataclass(slots=True)
class Call(Node):
    """``callee(arguments...)``; callees are always member expressions in valid sources."""

    callee: Node
    arguments: list[Node] = field(default_factory=list)


def describe(node: Node) -> str:
    """Render a short, source-like label for ``node`` used in error messages."""

    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Member):
        return f"{describe(node.target)}.{node.name}"
    if isinstance(node, Call):
        return f"{describe(node.callee)}(...)"
    if isinstance(node, Literal):
        return node.literal_type
    if isinstance(node, RegexLiteral):
        return "regular expression"
    if isinstance(node, ArrayLiteral):
        return "array literal"
    if isinstance(node, ObjectLiteral):
        return "object literal"
    return node.node_type


def _iter_possible_children(value: object) -> Iterator[Node]:
    if isinstance(value, Node):
        yield value
        return
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for item in value:
            yield from _iter_possible_children(item)


__all__ = [
    "ArrayLiteral",
    "Call",
    "Identifier",
    "Literal",
    "Member",
    "Node",
    "ObjectLiteral",
    "Property",
    "RegexLiteral",
    "Span",
    "describe",
]
