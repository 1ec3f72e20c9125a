"""Tests for the schema expression tokenizer and parser."""

import pytest

from schemaprobe.dsl import ast, grammar


def test_builder_chain_parses_to_calls_on_members():
    tree = grammar.parse_expression("z.string().min(3)")
    assert isinstance(tree, ast.Call)
    assert isinstance(tree.callee, ast.Member)
    assert tree.callee.name == "min"
    assert [arg.value for arg in tree.arguments] == [3]
    inner = tree.callee.target
    assert isinstance(inner, ast.Call)
    assert isinstance(inner.callee, ast.Member)
    assert inner.callee.target == ast.Identifier(name="z", span=ast.Span(1, 1, 1, 2))


def test_spans_cover_the_whole_call():
    tree = grammar.parse_expression("z.string()")
    assert tree.span.to_tuple() == (1, 1, 1, 11)


def test_object_literal_with_quoted_keys_and_trailing_commas():
    source = """
    z.object({
      id: z.number(),
      "display-name": z.string(),
      tags: z.array(z.string()),
    });
    """
    tree = grammar.parse_expression(source)
    shape = tree.arguments[0]
    assert isinstance(shape, ast.ObjectLiteral)
    assert [prop.key for prop in shape.properties] == ["id", "display-name", "tags"]
    assert shape.span.start_line == 2


def test_literals_are_decoded():
    tree = grammar.parse_expression(
        "z.tuple(['a\\nb', \"q\\\"\", `tmpl`, -1.5, 1e3, 0x1F, true, null, undefined])"
    )
    values = [(node.literal_type, node.value) for node in tree.arguments[0].elements]
    assert values == [
        ("string", "a\nb"),
        ("string", 'q"'),
        ("string", "tmpl"),
        ("number", -1.5),
        ("number", 1000),
        ("number", 31),
        ("boolean", True),
        ("null", None),
        ("undefined", None),
    ]


def test_regex_literal_keeps_pattern_and_flags():
    tree = grammar.parse_expression("z.string().regex(/^a\\/b[/]c$/gi)")
    regex = tree.arguments[0]
    assert isinstance(regex, ast.RegexLiteral)
    assert regex.pattern == "^a\\/b[/]c$"
    assert regex.flags == "gi"


def test_comments_are_ignored():
    tree = grammar.parse_expression("// leading\nz /* inline */ .string()")
    assert isinstance(tree, ast.Call)


@pytest.mark.parametrize("source", ["", "   ", "// only a comment"])
def test_empty_source_is_rejected(source):
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression(source)
    assert exc.value.message == "Schema source is empty"


def test_second_statement_is_rejected_with_position():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.string(); z.number()")
    assert (exc.value.line, exc.value.column) == (1, 13)
    assert "single expression" in exc.value.message


def test_statement_keywords_are_rejected():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("const schema = z.string()")
    assert "'const' is not supported" in exc.value.message
    assert (exc.value.line, exc.value.column) == (1, 1)


def test_arrow_functions_are_rejected():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.string().refine((v) => v.length > 0)")
    assert "Arrow functions are not supported" in exc.value.message


def test_shorthand_property_is_rejected():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.object({ name })")
    assert "Shorthand property 'name'" in exc.value.message


def test_unterminated_string_reports_opening_quote():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.literal('abc")
    assert exc.value.message == "Unterminated string literal"
    assert (exc.value.line, exc.value.column) == (1, 11)


def test_template_interpolation_is_rejected():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.literal(`a${b}`)")
    assert "interpolation" in exc.value.message


def test_error_position_on_later_line():
    source = "z.object({\n  a: z.string(),\n  b: z.number(\n})"
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression(source)
    assert (exc.value.line, exc.value.column) == (4, 1)
    assert str(exc.value).startswith("<schema>:4:1:")


def test_invalid_regex_flag():
    with pytest.raises(grammar.DSLParseError) as exc:
        grammar.parse_expression("z.string().regex(/a/q)")
    assert "Invalid regular expression flags" in exc.value.message


def test_walk_visits_every_node():
    tree = grammar.parse_expression("z.array(z.string())")
    kinds = [node.node_type for node in tree.walk()]
    assert kinds.count("Call") == 2
    assert kinds.count("Identifier") == 2
