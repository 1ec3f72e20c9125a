"""Validation semantics: paths, ordering, unions and unknown-key policies."""

from __future__ import annotations

import asyncio

import pytest

from schemaprobe.dsl.compiler import compile
from schemaprobe.resolver.resolver import VersionResolver
from schemaprobe.validator import (
    Schema,
    ValidationError,
    ValidationResult,
    validate,
)

_BINDING = asyncio.run(VersionResolver().resolve("3.24.2"))


def check(source: str, data, **kwargs) -> ValidationResult:
    return validate(compile(source, _BINDING), data, **kwargs)


def errors(source: str, data, **kwargs) -> list[tuple[tuple, str]]:
    return [(error.path, error.message) for error in check(source, data, **kwargs).errors]


def test_missing_required_field_reports_required_at_field_path():
    result = check("z.object({ name: z.string(), age: z.number() })", {"name": "a"})
    assert result.is_valid is False
    assert result.errors == (ValidationError(path=("age",), message="Required"),)


def test_accepted_data_has_no_errors():
    result = check(
        "z.object({ name: z.string(), age: z.number().int().nonnegative() })",
        {"name": "a", "age": 3},
    )
    assert result.is_valid
    assert result.errors == ()


def test_errors_follow_depth_first_declaration_order():
    source = """
    z.object({
      id: z.number(),
      users: z.array(z.object({ id: z.number(), email: z.string().email() })),
      name: z.string(),
    })
    """
    data = {
        "name": 5,
        "users": [{"id": 1, "email": "ok@example.com"}, {"id": "2", "email": "nope"}],
    }
    assert errors(source, data) == [
        (("id",), "Required"),
        (("users", 1, "id"), "Expected number, received string"),
        (("users", 1, "email"), "Invalid email"),
        (("name",), "Expected string, received number"),
    ]


def test_array_elements_are_reported_by_index():
    assert errors("z.array(z.number())", [1, "x", 3, None]) == [
        ((1,), "Expected number, received string"),
        ((3,), "Expected number, received null"),
    ]


def test_every_failed_refinement_is_reported():
    assert errors("z.string().min(5).email()", "ab") == [
        ((), "String must contain at least 5 character(s)"),
        ((), "Invalid email"),
    ]


def test_type_mismatch_stops_refinements():
    assert errors("z.string().min(5).email()", 7) == [((), "Expected string, received number")]


def test_union_passes_when_any_branch_passes():
    source = "z.union([z.object({ a: z.string() }), z.object({ b: z.number() })])"
    assert check(source, {"b": 1}).is_valid


def test_union_reports_branch_with_fewest_violations():
    source = """
    z.union([
      z.object({ a: z.string(), b: z.number(), c: z.number() }),
      z.object({ a: z.string() }),
    ])
    """
    assert errors(source, {"a": 1}) == [(("a",), "Expected string, received number")]


def test_union_tie_goes_to_first_branch():
    source = "z.union([z.string().min(5), z.string().email()])"
    assert errors(source, "abc") == [((), "String must contain at least 5 character(s)")]


def test_or_modifier_builds_union():
    assert check("z.string().or(z.number())", 4).is_valid
    assert not check("z.string().or(z.number())", True).is_valid


def test_unknown_keys_are_ignored_by_default():
    assert check("z.object({ a: z.number() })", {"a": 1, "extra": True}).is_valid


def test_strict_object_reports_unknown_keys_at_object_path():
    source = "z.object({ a: z.number() }).strict()"
    assert errors(source, {"a": 1, "x": 1, "y": 2}) == [
        ((), "Unrecognized key(s) in object: 'x', 'y'"),
    ]


def test_executor_policy_applies_to_objects_without_their_own():
    source = "z.object({ inner: z.object({ a: z.number() }) })"
    data = {"inner": {"a": 1, "b": 2}}
    assert check(source, data, unknown_keys="strip").is_valid
    assert check(source, data, unknown_keys="passthrough").is_valid
    assert errors(source, data, unknown_keys="strict") == [
        (("inner",), "Unrecognized key(s) in object: 'b'"),
    ]


def test_schema_policy_wins_over_executor_policy():
    source = "z.object({ a: z.number() }).passthrough()"
    assert check(source, {"a": 1, "b": 2}, unknown_keys="strict").is_valid


def test_catchall_validates_extra_keys():
    source = "z.object({ a: z.number() }).catchall(z.string())"
    assert errors(source, {"a": 1, "b": "x", "c": 3}) == [
        (("c",), "Expected string, received number"),
    ]


def test_unsupported_policy_is_reported_not_raised():
    result = check("z.string()", "a", unknown_keys="loose")
    assert result.errors == (
        ValidationError(path=(), message="Unsupported unknown-key policy 'loose'"),
    )


def test_optional_nullable_and_default():
    source = """
    z.object({
      a: z.string().optional(),
      b: z.number().nullable(),
      c: z.number().default(3),
      d: z.string().nullish(),
    })
    """
    assert check(source, {"b": None}).is_valid
    assert errors(source, {}) == [(("b",), "Required")]


@pytest.mark.parametrize(
    "source, data, message",
    [
        ("z.number()", True, "Expected number, received boolean"),
        ("z.number().int()", 1.5, "Expected integer, received float"),
        ("z.number().gte(10)", 3, "Number must be greater than or equal to 10"),
        ("z.number().positive()", 0, "Number must be greater than 0"),
        ("z.number().multipleOf(0.1)", 0.35, "Number must be a multiple of 0.1"),
        ("z.string().max(2)", "abc", "String must contain at most 2 character(s)"),
        ("z.string().length(2)", "abc", "String must contain exactly 2 character(s)"),
        ("z.string().url()", "not a url", "Invalid url"),
        ("z.string().uuid()", "123", "Invalid uuid"),
        ("z.string().regex(/^a+$/)", "b", "Invalid"),
        ("z.string().startsWith('x')", "abc", 'Invalid input: must start with "x"'),
        ("z.string().datetime()", "2024-01-01", "Invalid datetime"),
        ("z.boolean()", "true", "Expected boolean, received string"),
        ("z.null()", 0, "Expected null, received number"),
        ("z.literal('a')", "b", 'Invalid literal value, expected "a"'),
        (
            "z.enum(['a', 'b'])",
            "c",
            "Invalid enum value. Expected 'a' | 'b', received 'c'",
        ),
        ("z.array(z.string()).min(2)", ["a"], "Array must contain at least 2 element(s)"),
        ("z.never()", 1, "Expected never, received number"),
    ],
)
def test_leaf_messages(source, data, message):
    assert errors(source, data) == [((), message)]


@pytest.mark.parametrize(
    "source, data",
    [
        ("z.number().multipleOf(0.1)", 0.3),
        ("z.string().email()", "user@example.com"),
        ("z.string().url()", "https://example.com/path?q=1"),
        ("z.string().uuid()", "123e4567-e89b-12d3-a456-426614174000"),
        ("z.string().datetime()", "2024-01-01T10:20:30.123Z"),
        ("z.string().datetime({ offset: true })", "2024-01-01T10:20:30+02:00"),
        ("z.string().ip({ version: 'v4' })", "192.168.0.1"),
        ("z.string().date()", "2024-02-29"),
        ("z.string().trim().min(1)", "  a  "),
        ("z.string().toLowerCase().startsWith('ab')", "ABC"),
        ("z.literal(1)", 1.0),
        ("z.any()", {"anything": [1, 2]}),
        ("z.number().safe()", 9007199254740991),
    ],
)
def test_accepted_values(source, data):
    assert check(source, data).is_valid


def test_custom_messages():
    assert errors("z.string().min(3, 'Too short')", "a") == [((), "Too short")]
    assert errors("z.string().min(3, { message: 'Too short' })", "a") == [((), "Too short")]


def test_discriminated_union_selects_option_by_tag():
    source = """
    z.discriminatedUnion("type", [
      z.object({ type: z.literal("a"), x: z.string() }),
      z.object({ type: z.literal("b"), y: z.number() }),
    ])
    """
    assert check(source, {"type": "b", "y": 1}).is_valid
    assert errors(source, {"type": "a", "x": 1}) == [(("x",), "Expected string, received number")]
    assert errors(source, {"type": "c"}) == [
        (("type",), "Invalid discriminator value. Expected 'a' | 'b'"),
    ]


def test_tuple_and_record():
    assert errors("z.tuple([z.string(), z.number()])", ["a", "b"]) == [
        ((1,), "Expected number, received string"),
    ]
    assert errors("z.tuple([z.string()])", ["a", 1]) == [
        ((), "Array must contain at most 1 element(s)"),
    ]
    assert check("z.tuple([z.string()]).rest(z.number())", ["a", 1, 2]).is_valid
    assert errors("z.record(z.number())", {"a": 1, "b": "x"}) == [
        (("b",), "Expected number, received string"),
    ]


def test_intersection_reports_both_sides():
    source = "z.intersection(z.object({ a: z.string() }), z.object({ b: z.number() }))"
    assert errors(source, {}) == [(("a",), "Required"), (("b",), "Required")]


def test_object_shape_helpers():
    base = "z.object({ a: z.string(), b: z.number(), c: z.boolean() })"
    assert errors(f"{base}.pick({{ a: true }})", {}) == [(("a",), "Required")]
    assert errors(f"{base}.omit({{ a: true, b: true }})", {}) == [(("c",), "Required")]
    assert check(f"{base}.partial()", {}).is_valid
    assert errors(f"{base}.partial().required({{ b: true }})", {}) == [(("b",), "Required")]
    assert check(f"{base}.extend({{ d: z.null() }})", {"a": "", "b": 1, "c": True, "d": None}).is_valid
    assert errors(f"{base}.keyof()", "d") == [
        ((), "Invalid enum value. Expected 'a' | 'b' | 'c', received 'd'"),
    ]


def test_internal_failure_becomes_root_error():
    class Exploding(Schema):
        def check(self, value, ctx):
            raise RuntimeError("boom")

    result = validate(Exploding(), {"a": 1})
    assert result.errors == (ValidationError(path=(), message="Schema evaluation error: boom"),)


def test_result_serialises():
    result = check("z.object({ a: z.number() })", {})
    assert result.to_dict() == {
        "isValid": False,
        "errors": [{"path": ["a"], "message": "Required"}],
    }


def test_missing_literal_never_and_enum_fields_are_required():
    source = 'z.object({ kind: z.literal("a"), x: z.never(), role: z.enum(["a", "b"]) })'
    assert errors(source, {}) == [
        (("kind",), "Required"),
        (("x",), "Required"),
        (("role",), "Required"),
    ]


def test_present_literal_and_never_values_keep_their_messages():
    source = 'z.object({ kind: z.literal("a"), x: z.never() })'
    assert errors(source, {"kind": "b", "x": 1}) == [
        (("kind",), 'Invalid literal value, expected "a"'),
        (("x",), "Expected never, received number"),
    ]


def test_subnormal_step_does_not_hide_other_errors():
    source = "z.object({ a: z.number().multipleOf(5e-324), b: z.string() })"
    assert errors(source, {"a": 1.5, "b": 1}) == [(("b",), "Expected string, received number")]
