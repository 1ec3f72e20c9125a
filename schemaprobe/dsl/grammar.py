"""Tokenizer and parser for schema-builder expressions.

The accepted language is a single expression built from identifiers, member
access, calls, literals (strings, numbers, booleans, ``null``, ``undefined``,
regular expressions) and array/object literals, optionally followed by one
``;``. Anything else (statements, operators, arrow functions, spreads) is a
:class:`DSLParseError` carrying the 1-based line and column of the offending
token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from . import ast


class DSLParseError(RuntimeError):
    """Structured parse error that includes source location information."""

    def __init__(self, message: str, line: int, column: int, filename: str = "<schema>"):
        super().__init__(f"{filename}:{line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename


@dataclass(slots=True)
class Token:
    """Single lexical token."""

    kind: str
    value: str
    line: int
    column: int
    end_line: int
    end_column: int


LITERAL_WORDS = {"true", "false", "null", "undefined"}

STATEMENT_KEYWORDS = {
    "const",
    "let",
    "var",
    "function",
    "return",
    "if",
    "for",
    "while",
    "class",
    "import",
    "export",
    "new",
    "await",
    "async",
    "throw",
    "delete",
    "typeof",
    "void",
}

REGEX_FLAGS = set("dgimsuyv")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}

_PUNCTUATION = {
    "(": "LPAREN",
    ")": "RPAREN",
    "{": "LBRACE",
    "}": "RBRACE",
    "[": "LBRACKET",
    "]": "RBRACKET",
    ":": "COLON",
    ",": "COMMA",
    ";": "SEMICOLON",
    ".": "DOT",
    "-": "MINUS",
    "+": "PLUS",
}

# Operators have no meaning in a schema expression; the parser rejects them
# with a positioned error.
_OPERATOR_CHARS = set("=<>!&|?*%^~@#")
_DIGITS = "0123456789"


def _is_digit(ch: str) -> bool:
    return len(ch) == 1 and ch in _DIGITS


class Tokenizer:
    """Hand-written tokenizer with precise positions for error reporting."""

    def __init__(self, source: str, filename: str = "<schema>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while not self._eof:
            ch = self._peek()
            if ch.isspace():
                self._advance()
                continue
            if ch == "/" and self._peek(1) == "/":
                self._consume_line_comment()
                continue
            if ch == "/" and self._peek(1) == "*":
                self._consume_block_comment()
                continue
            if ch.isalpha() or ch in "_$":
                tokens.append(self._consume_identifier())
                continue
            if _is_digit(ch) or (ch == "." and _is_digit(self._peek(1))):
                tokens.append(self._consume_number())
                continue
            if ch in "\"'`":
                tokens.append(self._consume_string(ch))
                continue
            if ch == "/":
                tokens.append(self._consume_regex())
                continue
            tokens.append(self._consume_punctuation())
        tokens.append(Token("EOF", "", self.line, self.column, self.line, self.column))
        return tokens

    @property
    def _eof(self) -> bool:
        return self.index >= self.length

    def _peek(self, offset: int = 0) -> str:
        if self.index + offset >= self.length:
            return "\0"
        return self.source[self.index + offset]

    def _advance(self) -> str:
        ch = self.source[self.index]
        self.index += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _error(self, message: str, line: int, column: int) -> DSLParseError:
        return DSLParseError(message, line, column, self.filename)

    def _consume_line_comment(self) -> None:
        while not self._eof and self._peek() != "\n":
            self._advance()

    def _consume_block_comment(self) -> None:
        start_line, start_column = self.line, self.column
        self._advance()
        self._advance()
        while not self._eof:
            if self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                return
            self._advance()
        raise self._error("Unterminated comment", start_line, start_column)

    def _consume_identifier(self) -> Token:
        start_line, start_column = self.line, self.column
        value = self._advance()
        while self._peek().isalnum() or self._peek() in "_$":
            value += self._advance()
        return Token("IDENT", value, start_line, start_column, self.line, self.column)

    def _consume_digits(self) -> str:
        digits = ""
        while _is_digit(self._peek()) or (self._peek() == "_" and _is_digit(self._peek(1))):
            ch = self._advance()
            if ch != "_":
                digits += ch
        return digits

    def _consume_number(self) -> Token:
        start_line, start_column = self.line, self.column
        if self._peek() == "0" and self._peek(1) in "xX":
            self._advance()
            self._advance()
            digits = ""
            while self._peek() in "0123456789abcdefABCDEF" and self._peek() != "\0":
                digits += self._advance()
            if not digits:
                raise self._error("Invalid hexadecimal number", start_line, start_column)
            value = str(int(digits, 16))
            return Token("NUMBER", value, start_line, start_column, self.line, self.column)
        value = self._consume_digits()
        if self._peek() == ".":
            value += self._advance()
            value += self._consume_digits()
        if self._peek() in "eE" and (
            _is_digit(self._peek(1)) or (self._peek(1) in "+-" and _is_digit(self._peek(2)))
        ):
            value += self._advance()
            if self._peek() in "+-":
                value += self._advance()
            value += self._consume_digits()
        if self._peek().isalpha() or self._peek() in "_$":
            raise self._error("Identifier directly after number", self.line, self.column)
        return Token("NUMBER", value, start_line, start_column, self.line, self.column)

    def _consume_string(self, quote: str) -> Token:
        start_line, start_column = self.line, self.column
        self._advance()
        chars: list[str] = []
        while not self._eof:
            ch = self._peek()
            if ch == quote:
                self._advance()
                return Token(
                    "STRING", "".join(chars), start_line, start_column, self.line, self.column
                )
            if ch == "\n" and quote != "`":
                break
            if quote == "`" and ch == "$" and self._peek(1) == "{":
                raise self._error(
                    "Template literal interpolation is not supported", self.line, self.column
                )
            self._advance()
            if ch == "\\":
                chars.append(self._consume_escape())
            else:
                chars.append(ch)
        raise self._error("Unterminated string literal", start_line, start_column)

    def _consume_escape(self) -> str:
        line, column = self.line, self.column - 1
        if self._eof:
            raise self._error("Unterminated string literal", line, column)
        ch = self._advance()
        if ch == "\n":
            return ""
        if ch in _ESCAPES:
            return _ESCAPES[ch]
        if ch in "xu":
            width = 2 if ch == "x" else 4
            if ch == "u" and self._peek() == "{":
                self._advance()
                digits = ""
                while not self._eof and self._peek() != "}":
                    digits += self._advance()
                if self._eof:
                    raise self._error("Invalid Unicode escape sequence", line, column)
                self._advance()
            else:
                digits = "".join(self._advance() for _ in range(width) if not self._eof)
            try:
                return chr(int(digits, 16))
            except (ValueError, OverflowError):
                message = "Invalid hexadecimal escape sequence" if ch == "x" else (
                    "Invalid Unicode escape sequence"
                )
                raise self._error(message, line, column) from None
        return ch

    def _consume_regex(self) -> Token:
        start_line, start_column = self.line, self.column
        self._advance()
        body = ""
        in_class = False
        while True:
            if self._eof or self._peek() == "\n":
                raise self._error("Unterminated regular expression", start_line, start_column)
            ch = self._advance()
            if ch == "\\":
                if self._eof or self._peek() == "\n":
                    raise self._error("Unterminated regular expression", start_line, start_column)
                body += ch + self._advance()
                continue
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
            body += ch
        flags = ""
        while self._peek().isalpha():
            flag_line, flag_column = self.line, self.column
            flag = self._advance()
            if flag not in REGEX_FLAGS or flag in flags:
                raise self._error(
                    f"Invalid regular expression flags '{flags + flag}'", flag_line, flag_column
                )
            flags += flag
        return Token("REGEX", f"{body}/{flags}", start_line, start_column, self.line, self.column)

    def _consume_punctuation(self) -> Token:
        start_line, start_column = self.line, self.column
        ch = self._advance()
        if ch == "=" and self._peek() == ">":
            self._advance()
            return Token("FATARROW", "=>", start_line, start_column, self.line, self.column)
        if ch == "." and self._peek() == "." and self._peek(1) == ".":
            self._advance()
            self._advance()
            return Token("SPREAD", "...", start_line, start_column, self.line, self.column)
        if ch in _PUNCTUATION:
            return Token(_PUNCTUATION[ch], ch, start_line, start_column, self.line, self.column)
        if ch in _OPERATOR_CHARS:
            return Token("OPERATOR", ch, start_line, start_column, self.line, self.column)
        raise self._error(f"Unexpected character '{ch}'", start_line, start_column)


def _describe_token(token: Token) -> str:
    if token.kind == "EOF":
        return "end of input"
    if token.kind == "STRING":
        return "string"
    if token.kind == "REGEX":
        return "regular expression"
    return f"token '{token.value}'"


class Parser:
    """Recursive-descent parser for a single schema expression."""

    def __init__(self, tokens: Sequence[Token], filename: str = "<schema>") -> None:
        self.tokens = tokens
        self.index = 0
        self.filename = filename

    # ------------------------------------------------------------------
    # Token helpers

    def _peek(self, offset: int = 0) -> Token:
        target = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[target]

    def _previous(self) -> Token:
        return self.tokens[max(self.index - 1, 0)]

    def _advance(self) -> Token:
        token = self._peek()
        if token.kind != "EOF":
            self.index += 1
        return token

    def _match(self, *kinds: str) -> Optional[Token]:
        token = self._peek()
        if token.kind in kinds:
            self.index += 1
            return token
        return None

    def _check(self, *kinds: str) -> bool:
        return self._peek().kind in kinds

    def _error(self, message: str, token: Token) -> DSLParseError:
        return DSLParseError(message, token.line, token.column, self.filename)

    def _expect(self, kind: str, expected: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            raise self._error(f"Expected {expected} but found {_describe_token(token)}", token)
        self.index += 1
        return token

    def _span(self, start: Token) -> ast.Span:
        end = self._previous()
        return ast.Span(start.line, start.column, end.end_line, end.end_column)

    def _number(self, token: Token) -> int | float:
        try:
            return _number_value(token.value)
        except ValueError:
            raise self._error(f"Invalid number literal '{token.value}'", token) from None

    # ------------------------------------------------------------------
    # Entry point

    def parse_source(self) -> ast.Node:
        first = self._peek()
        if first.kind == "EOF":
            raise self._error("Schema source is empty", first)
        expression = self._parse_expression()
        self._match("SEMICOLON")
        trailing = self._peek()
        if trailing.kind != "EOF":
            raise self._error(
                f"Unexpected {_describe_token(trailing)}: a schema must be a single expression",
                trailing,
            )
        return expression

    # ------------------------------------------------------------------
    # Expressions

    def _parse_expression(self) -> ast.Node:
        token = self._peek()
        if token.kind == "IDENT" and token.value in STATEMENT_KEYWORDS:
            raise self._error(
                f"'{token.value}' is not supported: write a single schema expression", token
            )
        expression = self._parse_postfix()
        if self._check("FATARROW"):
            raise self._error(
                "Arrow functions are not supported in schema expressions", self._peek()
            )
        return expression

    def _parse_postfix(self) -> ast.Node:
        start = self._peek()
        expression = self._parse_primary()
        while True:
            if self._match("DOT"):
                name = self._expect("IDENT", "property name")
                expression = ast.Member(target=expression, name=name.value)
            elif self._match("LPAREN"):
                arguments = self._parse_sequence("RPAREN", "')'")
                expression = ast.Call(callee=expression, arguments=arguments)
            else:
                break
            expression.span = self._span(start)
        return expression

    def _parse_sequence(self, closing: str, label: str) -> list[ast.Node]:
        items: list[ast.Node] = []
        while not self._check(closing):
            if self._check("SPREAD"):
                raise self._error("Spread syntax is not supported", self._peek())
            items.append(self._parse_expression())
            if not self._match("COMMA"):
                break
        self._expect(closing, label)
        return items

    def _parse_primary(self) -> ast.Node:
        token = self._advance()
        kind = token.kind
        if kind == "IDENT":
            if token.value in LITERAL_WORDS:
                return self._word_literal(token)
            return ast.Identifier(name=token.value, span=self._span(token))
        if kind == "STRING":
            return ast.Literal(literal_type="string", value=token.value, span=self._span(token))
        if kind == "NUMBER":
            return ast.Literal(
                literal_type="number", value=self._number(token), span=self._span(token)
            )
        if kind in ("MINUS", "PLUS"):
            operand = self._expect("NUMBER", "a number")
            value = self._number(operand)
            return ast.Literal(
                literal_type="number",
                value=-value if kind == "MINUS" else value,
                span=self._span(token),
            )
        if kind == "REGEX":
            pattern, _, flags = token.value.rpartition("/")
            return ast.RegexLiteral(pattern=pattern, flags=flags, span=self._span(token))
        if kind == "LBRACKET":
            elements = self._parse_sequence("RBRACKET", "']'")
            return ast.ArrayLiteral(elements=elements, span=self._span(token))
        if kind == "LBRACE":
            return self._parse_object(token)
        if kind == "LPAREN":
            inner = self._parse_expression()
            self._expect("RPAREN", "')'")
            if self._check("FATARROW"):
                raise self._error(
                    "Arrow functions are not supported in schema expressions", self._peek()
                )
            return inner
        if kind == "FATARROW":
            raise self._error("Arrow functions are not supported in schema expressions", token)
        if kind == "SPREAD":
            raise self._error("Spread syntax is not supported", token)
        raise self._error(f"Unexpected {_describe_token(token)}", token)

    def _word_literal(self, token: Token) -> ast.Literal:
        values: dict[str, tuple[str, object]] = {
            "true": ("boolean", True),
            "false": ("boolean", False),
            "null": ("null", None),
            "undefined": ("undefined", None),
        }
        literal_type, value = values[token.value]
        return ast.Literal(literal_type=literal_type, value=value, span=self._span(token))

    def _parse_object(self, start: Token) -> ast.ObjectLiteral:
        properties: list[ast.Property] = []
        while not self._check("RBRACE"):
            key_token = self._advance()
            if key_token.kind in ("IDENT", "STRING"):
                key = key_token.value
            elif key_token.kind == "NUMBER":
                key = _property_key(self._number(key_token))
            elif key_token.kind == "SPREAD":
                raise self._error("Spread syntax is not supported", key_token)
            else:
                raise self._error(
                    f"Expected property name but found {_describe_token(key_token)}", key_token
                )
            if not self._check("COLON") and key_token.kind == "IDENT":
                raise self._error(
                    f"Shorthand property '{key}' is not supported; write '{key}: <schema>'",
                    key_token,
                )
            self._expect("COLON", "':'")
            value = self._parse_expression()
            properties.append(ast.Property(key=key, value=value, span=self._span(key_token)))
            if not self._match("COMMA"):
                break
        self._expect("RBRACE", "'}'")
        return ast.ObjectLiteral(properties=properties, span=self._span(start))


def _number_value(text: str) -> int | float:
    if any(marker in text for marker in ".eE"):
        value = float(text)
        return int(value) if value.is_integer() and abs(value) < 2**53 else value
    return int(text)


def _property_key(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def tokenize(source: str, *, filename: str = "<schema>") -> list[Token]:
    return Tokenizer(source, filename).tokenize()


def parse_expression(source: str, *, filename: str = "<schema>") -> ast.Node:
    """Parse ``source`` into a single expression tree."""

    tokens = tokenize(source, filename=filename)
    return Parser(tokens, filename).parse_source()


__all__ = [
    "DSLParseError",
    "Parser",
    "Token",
    "Tokenizer",
    "parse_expression",
    "tokenize",
]
