"""Leaf schemas: primitive type checks and their refinements."""

from __future__ import annotations

import ipaddress
import json
import math
import re
from datetime import date
from typing import Any, Callable, Mapping, Sequence
from urllib.parse import urlsplit

from .base import (
    UNDEFINED,
    Check,
    Schema,
    SchemaDefinitionError,
    ValidationContext,
    describe_type,
    format_number,
    message_argument,
    require_number,
)

MAX_SAFE_INTEGER = 2**53 - 1
MIN_SAFE_INTEGER = -(2**53 - 1)

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}\b-[0-9a-fA-F]{4}\b-[0-9a-fA-F]{4}\b-[0-9a-fA-F]{4}\b-[0-9a-fA-F]{12}$"
)
_EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)
_CUID_RE = re.compile(r"^c[^\s-]{8,}$", re.IGNORECASE)
_CUID2_RE = re.compile(r"^[0-9a-z]+$")
_ULID_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)
_NANOID_RE = re.compile(r"^[a-z0-9_-]{21}$", re.IGNORECASE)
_EMOJI_RE = re.compile(
    "^(?:[\U0001F000-\U0001FAFF\u2600-\u27BF\u2B00-\u2BFF\u3030\u303D\u3297\u3299"
    "\uFE0F\u200D\u20E3\U000E0020-\U000E007F])+$"
)
_BASE64_RE = re.compile(r"^([0-9a-zA-Z+/]{4})*(([0-9a-zA-Z+/]{2}==)|([0-9a-zA-Z+/]{3}=))?$")
_DATE_RE = re.compile(
    r"^((\d\d[2468][048]|\d\d[13579][26]|\d\d0[48]|[02468][048]00|[13579][26]00)-02-29"
    r"|\d{4}-((0[13578]|1[02])-(0[1-9]|[12]\d|3[01])|(0[469]|11)-(0[1-9]|[12]\d|30)"
    r"|(02)-(0[1-9]|1\d|2[0-8])))$"
)
_DURATION_RE = re.compile(
    r"^[-+]?P(?!$)(?:(?:[-+]?\d+Y)|(?:[-+]?\d+[.,]\d+Y$))?(?:(?:[-+]?\d+M)|(?:[-+]?\d+[.,]\d+M$))?"
    r"(?:(?:[-+]?\d+W)|(?:[-+]?\d+[.,]\d+W$))?(?:(?:[-+]?\d+D)|(?:[-+]?\d+[.,]\d+D$))?"
    r"(?:T(?=[\d+-])(?:(?:[-+]?\d+H)|(?:[-+]?\d+[.,]\d+H$))?(?:(?:[-+]?\d+M)|(?:[-+]?\d+[.,]\d+M$))?"
    r"(?:[-+]?\d+(?:[.,]\d+)?S)?)??$"
)
_URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z\d+\-.]*$")
_HIERARCHICAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

_PATTERN_CHECKS: dict[str, tuple[re.Pattern[str], str]] = {
    "uuid": (_UUID_RE, "Invalid uuid"),
    "email": (_EMAIL_RE, "Invalid email"),
    "cuid": (_CUID_RE, "Invalid cuid"),
    "cuid2": (_CUID2_RE, "Invalid cuid2"),
    "ulid": (_ULID_RE, "Invalid ulid"),
    "nanoid": (_NANOID_RE, "Invalid nanoid"),
    "emoji": (_EMOJI_RE, "Invalid emoji"),
    "base64": (_BASE64_RE, "Invalid base64"),
    "date": (_DATE_RE, "Invalid date"),
    "duration": (_DURATION_RE, "Invalid duration"),
}


def _options(name: str, raw: Any) -> Mapping[str, Any]:
    if raw is None or raw is UNDEFINED:
        return {}
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(f"{name}() expects an options object")
    return raw


def _length_argument(name: str, raw: Any) -> int:
    value = require_number(name, raw)
    if value < 0 or not float(value).is_integer():
        raise SchemaDefinitionError(f"{name}() expects a non-negative integer")
    return int(value)


def _seconds_fraction(precision: Any) -> str:
    if precision is None or precision is UNDEFINED:
        return r"(\.\d+)?"
    digits = _length_argument("precision", precision)
    if digits == 0:
        return ""
    return rf"\.\d{{{digits}}}"


def _datetime_pattern(options: Mapping[str, Any]) -> re.Pattern[str]:
    fraction = _seconds_fraction(options.get("precision"))
    suffix = "Z"
    if options.get("offset"):
        suffix = r"(([+-]\d{2}(:?\d{2})?)|Z)"
    if options.get("local"):
        suffix = f"({suffix})?"
    return re.compile(rf"^\d{{4}}-\d{{2}}-\d{{2}}T\d{{2}}:\d{{2}}:\d{{2}}{fraction}{suffix}$")


def _time_pattern(options: Mapping[str, Any]) -> re.Pattern[str]:
    fraction = _seconds_fraction(options.get("precision"))
    return re.compile(rf"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d{fraction}$")


def _is_url(text: str) -> bool:
    scheme, sep, rest = text.partition(":")
    if not sep or not rest or not _URL_SCHEME_RE.match(scheme):
        return False
    if scheme.lower() in _HIERARCHICAL_SCHEMES:
        try:
            parts = urlsplit(text)
        except ValueError:
            return False
        return bool(parts.hostname)
    return True


def _is_ip(text: str, version: str | None) -> bool:
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return False
    if version == "v4":
        return address.version == 4
    if version == "v6":
        return address.version == 6
    return True


def _float_safe_remainder(value: float, step: float) -> float:
    def decimals(number: float) -> int:
        text = repr(float(number))
        if "e-" in text:
            mantissa, exponent = text.split("e-")
            return len(mantissa.partition(".")[2].rstrip("0")) + int(exponent)
        return len(text.partition(".")[2].rstrip("0"))

    places = max(decimals(value), decimals(step))
    try:
        scaled_value = int(round(value * 10**places))
        scaled_step = int(round(step * 10**places))
    except OverflowError:
        # Scaling out of float range; the IEEE remainder is exact for finite operands.
        return math.remainder(value, step)
    return (scaled_value % scaled_step) / 10**places


class StringSchema(Schema):
    kind = "string"

    def __init__(self, checks: Sequence[Check] = ()) -> None:
        super().__init__()
        self.checks: tuple[Check, ...] = tuple(checks)

    def _with(self, check: Check) -> "StringSchema":
        clone = StringSchema(self.checks + (check,))
        clone.description = self.description
        return clone

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, str):
            ctx.invalid_type("string", value)
            return
        for item in self.checks:
            if item.kind == "trim":
                value = value.strip()
            elif item.kind == "toLowerCase":
                value = value.lower()
            elif item.kind == "toUpperCase":
                value = value.upper()
            else:
                message = self._failure(item, value)
                if message is not None:
                    ctx.add(item.message or message)

    def _failure(self, item: Check, value: str) -> str | None:
        kind = item.kind
        if kind == "min" and len(value) < item.value:
            return f"String must contain at least {item.value} character(s)"
        if kind == "max" and len(value) > item.value:
            return f"String must contain at most {item.value} character(s)"
        if kind == "length" and len(value) != item.value:
            return f"String must contain exactly {item.value} character(s)"
        if kind in _PATTERN_CHECKS:
            pattern, message = _PATTERN_CHECKS[kind]
            return None if pattern.match(value) else message
        if kind == "regex":
            return None if item.value.search(value) else "Invalid"
        if kind == "datetime":
            return None if item.value.match(value) else "Invalid datetime"
        if kind == "time":
            return None if item.value.match(value) else "Invalid time"
        if kind == "url":
            return None if _is_url(value) else "Invalid url"
        if kind == "ip":
            return None if _is_ip(value, item.value) else "Invalid ip"
        if kind == "startsWith" and not value.startswith(item.value):
            return f'Invalid input: must start with "{item.value}"'
        if kind == "endsWith" and not value.endswith(item.value):
            return f'Invalid input: must end with "{item.value}"'
        if kind == "includes":
            needle, position = item.value
            if needle not in value[position:]:
                if position:
                    return (
                        f'Invalid input: must include "{needle}" at one or more positions '
                        f"greater than or equal to {position}"
                    )
                return f'Invalid input: must include "{needle}"'
        return None

    # -- length ---------------------------------------------------------------

    def min(self, length: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        return self._with(Check("min", _length_argument("min", length), message_argument(message)))

    def max(self, length: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        return self._with(Check("max", _length_argument("max", length), message_argument(message)))

    def length(self, length: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        return self._with(
            Check("length", _length_argument("length", length), message_argument(message))
        )

    def nonempty(self, message: Any = None) -> "StringSchema":
        return self._with(Check("min", 1, message_argument(message)))

    # -- formats --------------------------------------------------------------

    def _format(self, kind: str, message: Any) -> "StringSchema":
        return self._with(Check(kind, None, message_argument(message)))

    def email(self, message: Any = None) -> "StringSchema":
        return self._format("email", message)

    def url(self, message: Any = None) -> "StringSchema":
        return self._format("url", message)

    def uuid(self, message: Any = None) -> "StringSchema":
        return self._format("uuid", message)

    def cuid(self, message: Any = None) -> "StringSchema":
        return self._format("cuid", message)

    def cuid2(self, message: Any = None) -> "StringSchema":
        return self._format("cuid2", message)

    def ulid(self, message: Any = None) -> "StringSchema":
        return self._format("ulid", message)

    def nanoid(self, message: Any = None) -> "StringSchema":
        return self._format("nanoid", message)

    def emoji(self, message: Any = None) -> "StringSchema":
        return self._format("emoji", message)

    def base64(self, message: Any = None) -> "StringSchema":
        return self._format("base64", message)

    def date(self, message: Any = None) -> "StringSchema":
        return self._format("date", message)

    def duration(self, message: Any = None) -> "StringSchema":
        return self._format("duration", message)

    def ip(self, options: Any = None) -> "StringSchema":
        opts = _options("ip", options)
        version = opts.get("version")
        if version not in (None, "v4", "v6"):
            raise SchemaDefinitionError('ip() version must be "v4" or "v6"')
        return self._with(Check("ip", version, message_argument(opts.get("message"))))

    def datetime(self, options: Any = None) -> "StringSchema":
        opts = _options("datetime", options)
        return self._with(
            Check("datetime", _datetime_pattern(opts), message_argument(opts.get("message")))
        )

    def time(self, options: Any = None) -> "StringSchema":
        opts = _options("time", options)
        return self._with(Check("time", _time_pattern(opts), message_argument(opts.get("message"))))

    def regex(self, pattern: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        if not isinstance(pattern, re.Pattern):
            raise SchemaDefinitionError("regex() expects a regular expression literal")
        return self._with(Check("regex", pattern, message_argument(message)))

    def startsWith(self, prefix: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        if not isinstance(prefix, str):
            raise SchemaDefinitionError("startsWith() expects a string")
        return self._with(Check("startsWith", prefix, message_argument(message)))

    def endsWith(self, suffix: Any = UNDEFINED, message: Any = None) -> "StringSchema":
        if not isinstance(suffix, str):
            raise SchemaDefinitionError("endsWith() expects a string")
        return self._with(Check("endsWith", suffix, message_argument(message)))

    def includes(self, needle: Any = UNDEFINED, options: Any = None) -> "StringSchema":
        if not isinstance(needle, str):
            raise SchemaDefinitionError("includes() expects a string")
        opts = _options("includes", options)
        position = opts.get("position", 0)
        position = _length_argument("position", position) if position else 0
        return self._with(
            Check("includes", (needle, position), message_argument(opts.get("message")))
        )

    # -- transforms applied before later checks ---------------------------------

    def trim(self) -> "StringSchema":
        return self._with(Check("trim"))

    def toLowerCase(self) -> "StringSchema":
        return self._with(Check("toLowerCase"))

    def toUpperCase(self) -> "StringSchema":
        return self._with(Check("toUpperCase"))


class NumberSchema(Schema):
    kind = "number"

    def __init__(self, checks: Sequence[Check] = ()) -> None:
        super().__init__()
        self.checks: tuple[Check, ...] = tuple(checks)

    def _with(self, check: Check) -> "NumberSchema":
        clone = NumberSchema(self.checks + (check,))
        clone.description = self.description
        return clone

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or (
            isinstance(value, float) and math.isnan(value)
        ):
            ctx.invalid_type("number", value)
            return
        for item in self.checks:
            message = self._failure(item, value)
            if message is not None:
                ctx.add(item.message or message)

    @staticmethod
    def _failure(item: Check, value: float | int) -> str | None:
        kind = item.kind
        bound = item.value
        if kind == "int" and not float(value).is_integer():
            return "Expected integer, received float"
        if kind == "gte" and value < bound:
            return f"Number must be greater than or equal to {format_number(bound)}"
        if kind == "gt" and value <= bound:
            return f"Number must be greater than {format_number(bound)}"
        if kind == "lte" and value > bound:
            return f"Number must be less than or equal to {format_number(bound)}"
        if kind == "lt" and value >= bound:
            return f"Number must be less than {format_number(bound)}"
        if kind == "multipleOf" and (
            math.isinf(value) or _float_safe_remainder(float(value), float(bound)) != 0
        ):
            return f"Number must be a multiple of {format_number(bound)}"
        if kind == "finite" and math.isinf(value):
            return "Number must be finite"
        return None

    def _bound(self, kind: str, name: str, raw: Any, message: Any) -> "NumberSchema":
        return self._with(Check(kind, require_number(name, raw), message_argument(message)))

    def gte(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("gte", "gte", value, message)

    def min(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("gte", "min", value, message)

    def gt(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("gt", "gt", value, message)

    def lte(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("lte", "lte", value, message)

    def max(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("lte", "max", value, message)

    def lt(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self._bound("lt", "lt", value, message)

    def int(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("int", None, message_argument(message)))

    def positive(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("gt", 0, message_argument(message)))

    def nonnegative(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("gte", 0, message_argument(message)))

    def negative(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("lt", 0, message_argument(message)))

    def nonpositive(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("lte", 0, message_argument(message)))

    def multipleOf(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        step = require_number("multipleOf", value)
        if step <= 0:
            raise SchemaDefinitionError("multipleOf() expects a positive number")
        return self._with(Check("multipleOf", step, message_argument(message)))

    def step(self, value: Any = UNDEFINED, message: Any = None) -> "NumberSchema":
        return self.multipleOf(value, message)

    def finite(self, message: Any = None) -> "NumberSchema":
        return self._with(Check("finite", None, message_argument(message)))

    def safe(self, message: Any = None) -> "NumberSchema":
        text = message_argument(message)
        return self._with(Check("gte", MIN_SAFE_INTEGER, text))._with(
            Check("lte", MAX_SAFE_INTEGER, text)
        )


class _TypeSchema(Schema):
    """Leaf accepting values for which ``_accepts`` holds."""

    expected: str = ""

    def _accepts(self, value: Any) -> bool:
        raise NotImplementedError

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not self._accepts(value):
            ctx.invalid_type(self.expected, value)


class BooleanSchema(_TypeSchema):
    kind = expected = "boolean"

    def _accepts(self, value: Any) -> bool:
        return isinstance(value, bool)


class NullSchema(_TypeSchema):
    kind = expected = "null"

    def _accepts(self, value: Any) -> bool:
        return value is None


class UndefinedSchema(_TypeSchema):
    kind = expected = "undefined"

    def _accepts(self, value: Any) -> bool:
        return value is UNDEFINED

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is not UNDEFINED:
            ctx.add(f"Expected undefined, received {describe_type(value)}")


class VoidSchema(UndefinedSchema):
    kind = expected = "void"

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is not UNDEFINED:
            ctx.add(f"Expected void, received {describe_type(value)}")


class NaNSchema(_TypeSchema):
    kind = expected = "nan"

    def _accepts(self, value: Any) -> bool:
        return isinstance(value, float) and math.isnan(value)


class DateSchema(_TypeSchema):
    kind = expected = "date"

    def _accepts(self, value: Any) -> bool:
        return isinstance(value, date)


class AnySchema(Schema):
    kind = "any"

    def check(self, value: Any, ctx: ValidationContext) -> None:
        return None


class UnknownSchema(AnySchema):
    kind = "unknown"


class NeverSchema(Schema):
    kind = "never"

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is UNDEFINED:
            ctx.add("Required")
            return
        ctx.add(f"Expected never, received {describe_type(value)}")


def _is_literal(value: Any) -> bool:
    return value is None or value is UNDEFINED or isinstance(value, (str, int, float, bool))


def literal_matches(expected: Any, value: Any) -> bool:
    """Compare with JavaScript ``===`` semantics (booleans are not numbers)."""

    if isinstance(expected, bool) or isinstance(value, bool):
        return isinstance(expected, bool) and isinstance(value, bool) and expected is value
    if expected is None or expected is UNDEFINED:
        return value is expected
    if isinstance(expected, (int, float)):
        return isinstance(value, (int, float)) and value == expected
    return isinstance(value, str) and value == expected


def _render_literal(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, float) and value.is_integer():
        return format_number(value)
    return json.dumps(value)


class LiteralSchema(Schema):
    kind = "literal"

    def __init__(self, value: Any) -> None:
        super().__init__()
        if not _is_literal(value):
            raise SchemaDefinitionError(
                f"literal() expects a string, number, boolean or null, received {describe_type(value)}"
            )
        self.value = value

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if value is UNDEFINED and self.value is not UNDEFINED:
            ctx.add("Required")
            return
        if not literal_matches(self.value, value):
            ctx.add(f"Invalid literal value, expected {_render_literal(self.value)}")


class EnumSchema(Schema):
    kind = "enum"

    def __init__(self, options: Sequence[Any]) -> None:
        super().__init__()
        if not isinstance(options, (list, tuple)) or not options:
            raise SchemaDefinitionError("enum() expects a non-empty array of strings")
        if not all(isinstance(option, str) for option in options):
            raise SchemaDefinitionError("enum() values must all be strings")
        self.options: tuple[str, ...] = tuple(options)

    def _expected(self) -> str:
        return " | ".join(f"'{option}'" for option in self.options)

    def check(self, value: Any, ctx: ValidationContext) -> None:
        if not isinstance(value, str):
            if value is UNDEFINED:
                ctx.add("Required")
            else:
                ctx.add(f"Expected {self._expected()}, received {describe_type(value)}")
            return
        if value not in self.options:
            ctx.add(f"Invalid enum value. Expected {self._expected()}, received '{value}'")

    def extract(self, values: Any = UNDEFINED) -> "EnumSchema":
        selected = self._subset("extract", values)
        return EnumSchema([option for option in self.options if option in selected])

    def exclude(self, values: Any = UNDEFINED) -> "EnumSchema":
        selected = self._subset("exclude", values)
        return EnumSchema([option for option in self.options if option not in selected])

    @staticmethod
    def _subset(name: str, values: Any) -> set[str]:
        if not isinstance(values, (list, tuple)):
            raise SchemaDefinitionError(f"{name}() expects an array of strings")
        return {value for value in values if isinstance(value, str)}


# Constructor signatures exposed to the DSL; composites add theirs in
# ``composites.CONSTRUCTORS``.
CONSTRUCTORS: dict[str, Callable[..., Schema]] = {
    "string": lambda: StringSchema(),
    "number": lambda: NumberSchema(),
    "boolean": lambda: BooleanSchema(),
    "null": lambda: NullSchema(),
    "undefined": lambda: UndefinedSchema(),
    "void": lambda: VoidSchema(),
    "nan": lambda: NaNSchema(),
    "date": lambda: DateSchema(),
    "any": lambda: AnySchema(),
    "unknown": lambda: UnknownSchema(),
    "never": lambda: NeverSchema(),
    "literal": lambda value=UNDEFINED: LiteralSchema(value),
    "enum": lambda options=UNDEFINED: EnumSchema(options),
}


__all__ = [
    "AnySchema",
    "BooleanSchema",
    "CONSTRUCTORS",
    "DateSchema",
    "EnumSchema",
    "LiteralSchema",
    "NaNSchema",
    "NeverSchema",
    "NullSchema",
    "NumberSchema",
    "StringSchema",
    "UndefinedSchema",
    "UnknownSchema",
    "VoidSchema",
    "literal_matches",
]
