"""Generate sample payloads that satisfy a compiled schema.

The generator walks the schema tree and builds one value per node, honouring
the refinements it can satisfy directly (lengths, bounds, formats, affixes).
Every generated payload is then validated against the same schema, so a
result only reports success when the data really conforms. Refinements with
no constructive solution, such as ``regex()``, produce a best-effort value
and an unsuccessful result carrying the data and the violations.
"""

from __future__ import annotations

import base64
import math
import random
import string
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Mapping

from schemaprobe.telemetry import metrics
from schemaprobe.telemetry.logger import get_logger

from .base import (
    UNDEFINED,
    CompiledSchema,
    DefaultSchema,
    NullableSchema,
    OptionalSchema,
    Schema,
    ValidationContext,
    ValidationError,
)
from .composites import (
    ArraySchema,
    DiscriminatedUnionSchema,
    IntersectionSchema,
    ObjectSchema,
    RecordSchema,
    TupleSchema,
    UnionSchema,
)
from .executor import validate
from .primitives import (
    BooleanSchema,
    DateSchema,
    EnumSchema,
    LiteralSchema,
    NaNSchema,
    NullSchema,
    NumberSchema,
    StringSchema,
    UndefinedSchema,
)

_LOGGER = get_logger("schemaprobe.samples")

_ALPHANUMERIC = string.ascii_letters + string.digits
_LOWER_ALPHANUMERIC = string.ascii_lowercase + string.digits
_ULID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_NANOID_ALPHABET = _ALPHANUMERIC + "_-"
_EMOJI = ("\U0001F600", "\U0001F680", "\U0001F4A1", "\U0001F389", "✨")
_EPOCH = date(2020, 1, 1)


@dataclass(slots=True)
class SampleOptions:
    """Knobs for sample generation; ``seed`` makes the output reproducible."""

    count: int = 1
    include_nulls: bool = False
    min_array_length: int = 1
    max_array_length: int = 5
    min_string_length: int = 3
    max_string_length: int = 10
    min_number: float = 0
    max_number: float = 100
    seed: int | str | None = None

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError("count must be at least 1")
        if self.min_array_length < 0 or self.min_string_length < 0:
            raise ValueError("minimum lengths must be non-negative")
        if self.min_array_length > self.max_array_length:
            raise ValueError("min_array_length must not exceed max_array_length")
        if self.min_string_length > self.max_string_length:
            raise ValueError("min_string_length must not exceed max_string_length")
        if self.min_number > self.max_number:
            raise ValueError("min_number must not exceed max_number")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SampleOptions":
        payload = dict(data or {})
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{key: value for key, value in payload.items() if key in known})


@dataclass(slots=True)
class SampleResult:
    """Generated data plus whether it passed validation against its schema."""

    success: bool
    data: Any = None
    error: str | None = None
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "data": _jsonable(self.data)}
        if self.error is not None:
            payload["error"] = self.error
            payload["errors"] = [error.to_dict() for error in self.errors]
        return payload


def _jsonable(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class SampleGenerator:
    """Build values for a schema tree using an isolated ``random.Random``."""

    def __init__(self, options: SampleOptions | None = None) -> None:
        self.options = options or SampleOptions()
        self._random = random.Random(self.options.seed)

    def generate(self, schema: Schema) -> Any:
        if isinstance(schema, OptionalSchema):
            return self.generate(schema.inner)
        if isinstance(schema, NullableSchema):
            return None if self.options.include_nulls else self.generate(schema.inner)
        if isinstance(schema, DefaultSchema):
            return self.generate(schema.inner)
        if isinstance(schema, StringSchema):
            return self._string(schema)
        if isinstance(schema, NumberSchema):
            return self._number(schema)
        if isinstance(schema, BooleanSchema):
            return self._random.random() < 0.5
        if isinstance(schema, NullSchema):
            return None
        if isinstance(schema, UndefinedSchema):
            return UNDEFINED
        if isinstance(schema, NaNSchema):
            return math.nan
        if isinstance(schema, DateSchema):
            return self._date()
        if isinstance(schema, LiteralSchema):
            return schema.value
        if isinstance(schema, EnumSchema):
            return self._random.choice(schema.options)
        if isinstance(schema, ObjectSchema):
            return self._object(schema)
        if isinstance(schema, ArraySchema):
            return self._array(schema)
        if isinstance(schema, TupleSchema):
            return [self._element(item) for item in schema.items]
        if isinstance(schema, RecordSchema):
            return self._record(schema)
        if isinstance(schema, DiscriminatedUnionSchema):
            return self.generate(self._random.choice(schema.options))
        if isinstance(schema, UnionSchema):
            return self._union(schema)
        if isinstance(schema, IntersectionSchema):
            left = self.generate(schema.left)
            right = self.generate(schema.right)
            if isinstance(left, dict) and isinstance(right, dict):
                return {**left, **right}
            return left
        # any, unknown and never have no constructive value.
        return None

    # -- composites -----------------------------------------------------------

    def _element(self, schema: Schema) -> Any:
        value = self.generate(schema)
        return None if value is UNDEFINED else value

    def _object(self, schema: ObjectSchema) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, field_schema in schema.shape.items():
            value = self.generate(field_schema)
            if value is not UNDEFINED:
                result[key] = value
        return result

    def _size(self, checks: Any) -> int:
        low, high = self.options.min_array_length, self.options.max_array_length
        lower, upper = 0, math.inf
        for item in checks:
            if item.kind == "min":
                lower = max(lower, item.value)
            elif item.kind == "max":
                upper = min(upper, item.value)
            elif item.kind == "length":
                lower = upper = item.value
        return _clamp(self._random.randint(low, high), lower, upper)

    def _array(self, schema: ArraySchema) -> list[Any]:
        return [self._element(schema.element) for _ in range(self._size(schema.checks))]

    def _record(self, schema: RecordSchema) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for _ in range(self._size(())):
            key = self.generate(schema.key_schema)
            if isinstance(key, str):
                result[key] = self._element(schema.value_schema)
        return result

    def _union(self, schema: UnionSchema) -> Any:
        options = list(schema.options)
        self._random.shuffle(options)
        candidate: Any = None
        for option in options:
            candidate = self.generate(option)
            ctx = ValidationContext()
            schema.check(candidate, ctx)
            if not ctx.issues:
                return candidate
        return candidate

    # -- leaves ---------------------------------------------------------------

    def _date(self) -> date:
        return _EPOCH + timedelta(days=self._random.randint(0, 365 * 5))

    def _text(self, length: int, alphabet: str = _ALPHANUMERIC) -> str:
        return "".join(self._random.choice(alphabet) for _ in range(length))

    def _string(self, schema: StringSchema) -> str:
        lower, upper = 0, math.inf
        prefix = suffix = ""
        needle, position = "", 0
        formatted: str | None = None
        for item in schema.checks:
            kind = item.kind
            if kind == "min":
                lower = max(lower, item.value)
            elif kind == "max":
                upper = min(upper, item.value)
            elif kind == "length":
                lower = upper = item.value
            elif kind == "startsWith":
                prefix = item.value
            elif kind == "endsWith":
                suffix = item.value
            elif kind == "includes":
                needle, position = item.value
            elif formatted is None:
                formatted = self._format(kind, item.value)
        if formatted is not None:
            return formatted

        target = _clamp(
            self._random.randint(self.options.min_string_length, self.options.max_string_length),
            lower,
            upper,
        )
        head = prefix + self._text(max(0, position - len(prefix))) + needle
        filler = max(0, target - len(head) - len(suffix))
        return head + self._text(filler) + suffix

    def _format(self, kind: str, value: Any) -> str | None:
        word = self._text(8, string.ascii_lowercase)
        if kind == "email":
            return f"{word}@example.com"
        if kind == "url":
            return f"https://example.com/{word}"
        if kind == "uuid":
            return str(uuid.UUID(int=self._random.getrandbits(128), version=4))
        if kind == "cuid":
            return "c" + self._text(24, _LOWER_ALPHANUMERIC)
        if kind == "cuid2":
            return self._text(24, _LOWER_ALPHANUMERIC)
        if kind == "ulid":
            return self._text(26, _ULID_ALPHABET)
        if kind == "nanoid":
            return self._text(21, _NANOID_ALPHABET)
        if kind == "emoji":
            return self._random.choice(_EMOJI)
        if kind == "base64":
            raw = bytes(self._random.getrandbits(8) for _ in range(9))
            return base64.b64encode(raw).decode("ascii")
        if kind == "date":
            return self._date().isoformat()
        if kind == "duration":
            return f"P{self._random.randint(1, 30)}D"
        if kind == "ip":
            if value == "v6":
                return f"2001:db8::{self._random.randint(1, 0xFFFF):x}"
            return f"192.168.{self._random.randint(0, 255)}.{self._random.randint(1, 254)}"
        if kind == "datetime":
            return _first_match(value, f"{self._date().isoformat()}T10:30:00", ("Z", "", "+00:00"))
        if kind == "time":
            return _first_match(value, "10:30:00", ("",))
        # trim, case transforms and regex have no dedicated value.
        return None

    def _number(self, schema: NumberSchema) -> int | float:
        lower, upper = -math.inf, math.inf
        lower_open = upper_open = False
        step: float | None = None
        for item in schema.checks:
            if item.kind in ("gte", "gt") and item.value >= lower:
                lower_open = item.kind == "gt" or (item.value == lower and lower_open)
                lower = item.value
            elif item.kind in ("lte", "lt") and item.value <= upper:
                upper_open = item.kind == "lt" or (item.value == upper and upper_open)
                upper = item.value
            elif item.kind == "multipleOf":
                step = item.value if step is None else max(step, item.value)

        low, high = _number_window(
            lower, upper, float(self.options.min_number), float(self.options.max_number)
        )
        if step is not None:
            return self._multiple(step, low, high, lower_open, upper_open, lower, upper)

        first = math.floor(low) + 1 if lower_open and float(low).is_integer() else math.ceil(low)
        last = math.ceil(high) - 1 if upper_open and float(high).is_integer() else math.floor(high)
        if first <= last:
            return self._random.randint(first, last)
        return (low + high) / 2

    def _multiple(
        self,
        step: float,
        low: float,
        high: float,
        lower_open: bool,
        upper_open: bool,
        lower: float,
        upper: float,
    ) -> int | float:
        places = _decimal_places(step)
        try:
            first, last = math.ceil(low / step), math.floor(high / step)
        except OverflowError:
            # Quotient out of float range; validation reports whether the midpoint fits.
            return (low + high) / 2
        candidates = [first]
        if first <= last:
            candidates = [self._random.randint(first, last), first + 1, last - 1]
        for k in candidates:
            value = round(k * step, places)
            if (value > lower if lower_open else value >= lower) and (
                value < upper if upper_open else value <= upper
            ):
                break
        if places == 0:
            return int(value)
        return value


def _clamp(value: int, lower: float, upper: float) -> int:
    if value < lower:
        value = int(lower)
    if value > upper:
        value = int(upper)
    return value


def _number_window(lower: float, upper: float, low: float, high: float) -> tuple[float, float]:
    """Intersect the schema bounds with the preferred range, or fall back to the schema's."""

    if max(lower, low) <= min(upper, high):
        return max(lower, low), min(upper, high)
    span = high - low
    if math.isinf(upper):
        return lower, lower + span
    if math.isinf(lower):
        return upper - span, upper
    return lower, upper


def _decimal_places(number: float) -> int:
    text = repr(float(number))
    if "e-" in text:
        mantissa, exponent = text.split("e-")
        return len(mantissa.partition(".")[2].rstrip("0")) + int(exponent)
    return len(text.partition(".")[2].rstrip("0"))


def _first_match(pattern: Any, base: str, suffixes: tuple[str, ...]) -> str:
    fractions = [""] + ["." + "0" * digits for digits in range(1, 10)]
    for suffix in suffixes:
        for fraction in fractions:
            candidate = f"{base}{fraction}{suffix}"
            if pattern.match(candidate):
                return candidate
    return base + suffixes[0]


def generate_sample_data(
    schema: CompiledSchema | Schema,
    options: SampleOptions | Mapping[str, Any] | None = None,
    *,
    unknown_keys: str | None = None,
) -> SampleResult:
    """Generate ``options.count`` payloads for ``schema`` and validate them.

    A single payload is returned as-is; a larger count yields a list. The
    result is successful only when every payload validates.
    """

    if not isinstance(options, SampleOptions):
        options = SampleOptions.from_mapping(options)
    target = schema.schema if isinstance(schema, CompiledSchema) else schema
    generator = SampleGenerator(options)
    items = [generator.generate(target) for _ in range(options.count)]

    errors: list[ValidationError] = []
    for index, item in enumerate(items):
        outcome = validate(target, item, unknown_keys=unknown_keys)
        for error in outcome.errors:
            path = error.path if options.count == 1 else (index, *error.path)
            errors.append(ValidationError(path=path, message=error.message))

    data = items[0] if options.count == 1 else items
    metrics.emit("schemaprobe.samples.generated", float(options.count), tags={"kind": target.kind})
    if errors:
        _LOGGER.info("sample failed validation | kind=%s errors=%d", target.kind, len(errors))
        return SampleResult(
            success=False,
            data=data,
            error="Generated data failed schema validation",
            errors=tuple(errors),
        )
    return SampleResult(success=True, data=data)


__all__ = ["SampleGenerator", "SampleOptions", "SampleResult", "generate_sample_data"]
