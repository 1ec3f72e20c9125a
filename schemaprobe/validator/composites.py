"""Composite schemas: objects, sequences, records and alternatives."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from .base import (
    UNDEFINED,
    Check,
    OptionalSchema,
    Schema,
    SchemaDefinitionError,
    ValidationContext,
    describe_type,
    message_argument,
    require_number,
    require_schema,
)
from .primitives import EnumSchema, LiteralSchema, StringSchema, literal_matches


def _shape_argument(name: str, raw: Any) -> dict[str, Schema]:
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(f"{name}() expects an object of schemas")
    shape: dict[str, Schema] = {}
    for key, value in raw.items():
        if not isinstance(value, Schema):
            raise SchemaDefinitionError(
                f"{name}() field '{key}' must be a schema, received {describe_type(value)}"
            )
        shape[str(key)] = value
    return shape


def _mask_argument(name: str, raw: Any) -> set[str]:
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(f"{name}() expects an object such as {{ field: true }}")
    return {str(key) for key, flag in raw.items() if flag is True}


def _schema_list(name: str, raw: Any, minimum: int = 1) -> list[Schema]:
    if not isinstance(raw, (list, tuple)):
        raise SchemaDefinitionError(f"{name}() expects an array of schemas")
    items = [require_schema(name, item) for item in raw]
    if len(items) < minimum:
        raise SchemaDefinitionError(f"{name}() expects at least {minimum} schema(s)")
    return items


def _count_argument(name: str, raw: Any) -> int:
    value = require_number(name, raw)
    if value < 0 or not float(value).is_integer():
        raise SchemaDefinitionError(f"{name}() expects a non-negative integer")
    return int(value)


class ObjectSchema(Schema):
    """Validates declared fields in order, then applies the unknown-key policy.

    ``unknown_keys`` is ``None`` until ``strict()``, ``passthrough()`` or
    ``strip()`` is called; until then the executor-wide policy applies.
    """

    kind = "object"

    def __init__(
        self,
        shape: Mapping[str, Schema],
        unknown_keys: str | None = None,
        catchall: Schema | None = None,
        strict_message: str | None = None,
    ) -> None:
        super().__init__()
        self.shape: dict[str, Schema] = dict(shape)
        self.unknown_keys = unknown_keys
        self.catchall_schema = catchall
        self.strict_message = strict_message

    def _derive(self, shape: Mapping[str, Schema] | None = None, **changes: Any) -> "ObjectSchema":
        clone = ObjectSchema(
            self.shape if shape is None else shape,
            unknown_keys=changes.get("unknown_keys", self.unknown_keys),
            catchall=changes.get("catchall", self.catchall_schema),
            strict_message=changes.get("strict_message", self.strict_message),
        )
        clone.description = self.description
        return clone

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, Mapping):
            ctx.invalid_type("object", value)
            return
        for key, field in self.shape.items():
            with ctx.at(key):
                field.check(value.get(key, UNDEFINED), ctx)
        extra = [key for key in value if key not in self.shape]
        if not extra:
            return
        if self.catchall_schema is not None:
            for key in extra:
                with ctx.at(key):
                    self.catchall_schema.check(value[key], ctx)
            return
        policy = self.unknown_keys or ctx.unknown_keys
        if policy == "strict":
            keys = ", ".join(f"'{key}'" for key in extra)
            ctx.add(self.strict_message or f"Unrecognized key(s) in object: {keys}")

    # -- unknown-key policy ---------------------------------------------------

    def strict(self, message: Any = None) -> "ObjectSchema":
        return self._derive(unknown_keys="strict", strict_message=message_argument(message))

    def passthrough(self) -> "ObjectSchema":
        return self._derive(unknown_keys="passthrough")

    def strip(self) -> "ObjectSchema":
        return self._derive(unknown_keys="strip")

    def catchall(self, schema: Any = UNDEFINED) -> "ObjectSchema":
        return self._derive(catchall=require_schema("catchall", schema))

    # -- shape manipulation ---------------------------------------------------

    def extend(self, shape: Any = UNDEFINED) -> "ObjectSchema":
        return self._derive({**self.shape, **_shape_argument("extend", shape)})

    def merge(self, other: Any = UNDEFINED) -> "ObjectSchema":
        if not isinstance(other, ObjectSchema):
            raise SchemaDefinitionError("merge() expects an object schema")
        merged = ObjectSchema(
            {**self.shape, **other.shape},
            unknown_keys=other.unknown_keys,
            catchall=other.catchall_schema,
            strict_message=other.strict_message,
        )
        merged.description = self.description
        return merged

    def pick(self, mask: Any = UNDEFINED) -> "ObjectSchema":
        keys = _mask_argument("pick", mask)
        return self._derive({key: value for key, value in self.shape.items() if key in keys})

    def omit(self, mask: Any = UNDEFINED) -> "ObjectSchema":
        keys = _mask_argument("omit", mask)
        return self._derive({key: value for key, value in self.shape.items() if key not in keys})

    def partial(self, mask: Any = None) -> "ObjectSchema":
        keys = set(self.shape) if mask is None else _mask_argument("partial", mask)
        return self._derive(
            {
                key: (value.optional() if key in keys else value)
                for key, value in self.shape.items()
            }
        )

    def required(self, mask: Any = None) -> "ObjectSchema":
        keys = set(self.shape) if mask is None else _mask_argument("required", mask)
        shape: dict[str, Schema] = {}
        for key, value in self.shape.items():
            while key in keys and isinstance(value, OptionalSchema):
                value = value.unwrap()
            shape[key] = value
        return self._derive(shape)

    def keyof(self) -> EnumSchema:
        return EnumSchema(list(self.shape))


class ArraySchema(Schema):
    kind = "array"

    def __init__(self, element: Schema, checks: Sequence[Check] = ()) -> None:
        super().__init__()
        self.element = element
        self.checks: tuple[Check, ...] = tuple(checks)

    def _with(self, check: Check) -> "ArraySchema":
        clone = ArraySchema(self.element, self.checks + (check,))
        clone.description = self.description
        return clone

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, (list, tuple)):
            ctx.invalid_type("array", value)
            return
        size = len(value)
        for item in self.checks:
            if item.kind == "min" and size < item.value:
                ctx.add(item.message or f"Array must contain at least {item.value} element(s)")
            elif item.kind == "max" and size > item.value:
                ctx.add(item.message or f"Array must contain at most {item.value} element(s)")
            elif item.kind == "length" and size != item.value:
                ctx.add(item.message or f"Array must contain exactly {item.value} element(s)")
        for index, element in enumerate(value):
            with ctx.at(index):
                self.element.check(element, ctx)

    def min(self, length: Any = UNDEFINED, message: Any = None) -> "ArraySchema":
        return self._with(Check("min", _count_argument("min", length), message_argument(message)))

    def max(self, length: Any = UNDEFINED, message: Any = None) -> "ArraySchema":
        return self._with(Check("max", _count_argument("max", length), message_argument(message)))

    def length(self, length: Any = UNDEFINED, message: Any = None) -> "ArraySchema":
        return self._with(
            Check("length", _count_argument("length", length), message_argument(message))
        )

    def nonempty(self, message: Any = None) -> "ArraySchema":
        return self._with(Check("min", 1, message_argument(message)))


class TupleSchema(Schema):
    kind = "tuple"

    def __init__(self, items: Sequence[Schema], rest: Schema | None = None) -> None:
        super().__init__()
        self.items: tuple[Schema, ...] = tuple(items)
        self.rest_schema = rest

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, (list, tuple)):
            ctx.invalid_type("array", value)
            return
        expected = len(self.items)
        if len(value) < expected:
            ctx.add(f"Array must contain at least {expected} element(s)")
            return
        if self.rest_schema is None and len(value) > expected:
            ctx.add(f"Array must contain at most {expected} element(s)")
        for index, element in enumerate(value):
            schema = self.items[index] if index < expected else self.rest_schema
            if schema is None:
                break
            with ctx.at(index):
                schema.check(element, ctx)

    def rest(self, schema: Any = UNDEFINED) -> "TupleSchema":
        return TupleSchema(self.items, require_schema("rest", schema))


class RecordSchema(Schema):
    kind = "record"

    def __init__(self, key_schema: Schema, value_schema: Schema) -> None:
        super().__init__()
        self.key_schema = key_schema
        self.value_schema = value_schema

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, Mapping):
            ctx.invalid_type("object", value)
            return
        for key, item in value.items():
            with ctx.at(key):
                self.key_schema.check(key, ctx)
                self.value_schema.check(item, ctx)


class UnionSchema(Schema):
    """Reports the branch with the fewest violations; earlier branches win ties."""

    kind = "union"

    def __init__(self, options: Sequence[Schema]) -> None:
        super().__init__()
        self.options: tuple[Schema, ...] = tuple(options)

    def check(self, value: Any, ctx: ValidationContext) -> None:
        best: ValidationContext | None = None
        for option in self.options:
            attempt = ctx.branch()
            option.check(value, attempt)
            if best is None or len(attempt.issues) < len(best.issues):
                best = attempt
            if not best.issues:
                return
        if best is not None:
            ctx.absorb(best)


class DiscriminatedUnionSchema(Schema):
    kind = "discriminatedUnion"

    def __init__(self, discriminator: str, options: Sequence[Schema]) -> None:
        super().__init__()
        self.discriminator = discriminator
        self.options: tuple[Schema, ...] = tuple(options)
        self._by_value: list[tuple[Any, ObjectSchema]] = []
        for option in options:
            if not isinstance(option, ObjectSchema):
                raise SchemaDefinitionError("discriminatedUnion() options must be object schemas")
            tag = option.shape.get(discriminator)
            if isinstance(tag, LiteralSchema):
                values: Sequence[Any] = [tag.value]
            elif isinstance(tag, EnumSchema):
                values = tag.options
            else:
                raise SchemaDefinitionError(
                    f"discriminatedUnion() option is missing a literal '{discriminator}' field"
                )
            for tag_value in values:
                if any(existing == tag_value for existing, _ in self._by_value):
                    raise SchemaDefinitionError(
                        f"discriminatedUnion() has duplicate discriminator value {tag_value!r}"
                    )
                self._by_value.append((tag_value, option))

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, Mapping):
            ctx.invalid_type("object", value)
            return
        tag_value = value.get(self.discriminator, UNDEFINED)
        for candidate, option in self._by_value:
            if literal_matches(candidate, tag_value):
                option.check(value, ctx)
                return
        expected = " | ".join(f"'{candidate}'" for candidate, _ in self._by_value)
        with ctx.at(self.discriminator):
            ctx.add(f"Invalid discriminator value. Expected {expected}")


class IntersectionSchema(Schema):
    kind = "intersection"

    def __init__(self, left: Schema, right: Schema) -> None:
        super().__init__()
        self.left = left
        self.right = right

    def check(self, value: Any, ctx: ValidationContext) -> None:
        self.left.check(value, ctx)
        self.right.check(value, ctx)


def _object(shape: Any = None) -> ObjectSchema:
    return ObjectSchema(_shape_argument("object", {} if shape is None else shape))


def _array(element: Any = UNDEFINED) -> ArraySchema:
    return ArraySchema(require_schema("array", element))


def _tuple(items: Any = UNDEFINED, rest: Any = None) -> TupleSchema:
    schemas = _schema_list("tuple", items, minimum=0)
    return TupleSchema(schemas, require_schema("tuple", rest) if rest is not None else None)


def _record(first: Any = UNDEFINED, second: Any = UNDEFINED) -> RecordSchema:
    if second is UNDEFINED:
        return RecordSchema(StringSchema(), require_schema("record", first))
    return RecordSchema(require_schema("record", first), require_schema("record", second))


def _union(options: Any = UNDEFINED) -> UnionSchema:
    return UnionSchema(_schema_list("union", options))


def _discriminated_union(discriminator: Any = UNDEFINED, options: Any = UNDEFINED) -> Schema:
    if not isinstance(discriminator, str):
        raise SchemaDefinitionError("discriminatedUnion() expects a discriminator key string")
    return DiscriminatedUnionSchema(discriminator, _schema_list("discriminatedUnion", options))


def _intersection(left: Any = UNDEFINED, right: Any = UNDEFINED) -> IntersectionSchema:
    return IntersectionSchema(
        require_schema("intersection", left), require_schema("intersection", right)
    )


CONSTRUCTORS: dict[str, Callable[..., Schema]] = {
    "object": _object,
    "array": _array,
    "tuple": _tuple,
    "record": _record,
    "union": _union,
    "discriminatedUnion": _discriminated_union,
    "intersection": _intersection,
    "optional": lambda schema=UNDEFINED: require_schema("optional", schema).optional(),
    "nullable": lambda schema=UNDEFINED: require_schema("nullable", schema).nullable(),
}


__all__ = [
    "ArraySchema",
    "CONSTRUCTORS",
    "DiscriminatedUnionSchema",
    "IntersectionSchema",
    "ObjectSchema",
    "RecordSchema",
    "TupleSchema",
    "UnionSchema",
]
