"""Restricted reader for the schedule data embedded in the page script.

The upstream page defines its schedule with plain variable declarations::

    var times = [...];
    var movies = {...};
    var days = {"Milano_Bicocca-1": [{date: "...", events: [...]}]};

Those statements are parsed here as data, never executed. Only literals
(strings, numbers, booleans, null/undefined, arrays, objects) and references
to names bound earlier in the same block are accepted. Calls, member access,
operators and every other construct raise InterpreterSyntaxError.
"""

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable

from .errors import InterpreterMissingBinding, InterpreterSyntaxError

REQUIRED_NAMES = ("times", "movies", "days")

_DECLARATIONS = frozenset({"var", "let", "const"})
_LITERALS = {"true": True, "false": False, "null": None, "undefined": None}
_RESERVED = frozenset({
    "function", "return", "if", "else", "for", "while", "do", "switch", "case",
    "break", "continue", "new", "delete", "typeof", "instanceof", "in", "of",
    "this", "class", "extends", "super", "import", "export", "try", "catch",
    "finally", "throw", "with", "yield", "await", "async", "void", "debugger",
})

_WHITESPACE = re.compile(r"[ \t\r\f\v\u00a0\ufeff\u2028\u2029]+")
_LINE_COMMENT = re.compile(r"//[^\n]*")
_NUMBER = re.compile(
    r"0[xX][0-9a-fA-F]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII
)
_IDENTIFIER = re.compile(r"(?:[^\W\d]|\$)[\w$]*")
# Deepest array/object nesting accepted, references included
MAX_DEPTH = 200
_PUNCT = frozenset("{}[],:;=+-")

_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v",
    "0": "\0", "\\": "\\", "'": "'", '"': '"', "/": "/",
}


@dataclass(frozen=True)
class Token:
    kind: str        # "punct" | "string" | "number" | "name" | "eof"
    value: Any
    line: int
    column: int
    newline_before: bool = False


class _Tokenizer:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.line_start = 0

    def _error(self, message: str, pos: int | None = None) -> InterpreterSyntaxError:
        pos = self.pos if pos is None else pos
        line = self.text.count("\n", 0, pos) + 1
        column = pos - (self.text.rfind("\n", 0, pos) + 1) + 1
        return InterpreterSyntaxError(message, line, column)

    def _advance(self, end: int) -> None:
        chunk = self.text[self.pos:end]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.line_start = self.pos + chunk.rfind("\n") + 1
        self.pos = end

    def _skip_blank(self) -> bool:
        """Skip whitespace and comments, return True if a newline was crossed."""
        crossed = False
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "\n":
                crossed = True
                self._advance(self.pos + 1)
                continue
            m = _WHITESPACE.match(text, self.pos)
            if m:
                self._advance(m.end())
                continue
            if text.startswith("//", self.pos):
                self._advance(_LINE_COMMENT.match(text, self.pos).end())
                continue
            if text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self._error("unterminated comment")
                if "\n" in text[self.pos:end]:
                    crossed = True
                self._advance(end + 2)
                continue
            break
        return crossed

    def tokens(self) -> list[Token]:
        out: list[Token] = []
        text = self.text
        while True:
            crossed = self._skip_blank()
            line, column = self.line, self.pos - self.line_start + 1
            if self.pos >= len(text):
                out.append(Token("eof", None, line, column, crossed))
                return out
            ch = text[self.pos]
            if ch in "'\"":
                value = self._string(ch)
                out.append(Token("string", value, line, column, crossed))
                continue
            m = _NUMBER.match(text, self.pos)
            if m and (ch in "0123456789" or ch == "."):
                out.append(Token("number", _number(m.group()), line, column, crossed))
                self._advance(m.end())
                if self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] in "_$"):
                    raise self._error("identifier directly after number")
                continue
            m = _IDENTIFIER.match(text, self.pos)
            if m:
                out.append(Token("name", m.group(), line, column, crossed))
                self._advance(m.end())
                continue
            if ch in _PUNCT:
                out.append(Token("punct", ch, line, column, crossed))
                self._advance(self.pos + 1)
                continue
            raise self._error(f"unexpected character {ch!r}")

    def _string(self, quote: str) -> str:
        text = self.text
        start = self.pos
        i = self.pos + 1
        parts: list[str] = []
        while True:
            if i >= len(text):
                raise self._error("unterminated string", start)
            ch = text[i]
            if ch == quote:
                self._advance(i + 1)
                return "".join(parts)
            if ch == "\n":
                raise self._error("newline in string", i)
            if ch != "\\":
                parts.append(ch)
                i += 1
                continue
            i += 1
            if i >= len(text):
                raise self._error("unterminated string", start)
            esc = text[i]
            if esc == "\n":
                # line continuation
                i += 1
            elif esc == "\r":
                i += 2 if text.startswith("\r\n", i) else 1
            elif esc == "x":
                digits = text[i + 1:i + 3]
                if not re.fullmatch(r"[0-9a-fA-F]{2}", digits):
                    raise self._error("invalid \\x escape", i)
                parts.append(chr(int(digits, 16)))
                i += 3
            elif esc == "u":
                if text.startswith("{", i + 1):
                    close = text.find("}", i + 2)
                    digits = text[i + 2:close] if close != -1 else ""
                    if not re.fullmatch(r"[0-9a-fA-F]{1,6}", digits) or int(digits, 16) > 0x10FFFF:
                        raise self._error("invalid \\u{} escape", i)
                    parts.append(chr(int(digits, 16)))
                    i = close + 1
                else:
                    digits = text[i + 1:i + 5]
                    if not re.fullmatch(r"[0-9a-fA-F]{4}", digits):
                        raise self._error("invalid \\u escape", i)
                    parts.append(chr(int(digits, 16)))
                    i += 5
            else:
                parts.append(_SIMPLE_ESCAPES.get(esc, esc))
                i += 1


def _number(raw: str) -> int | float:
    if raw[:2] in ("0x", "0X"):
        return int(raw, 16)
    if any(c in raw for c in ".eE"):
        return float(raw)
    return int(raw)


def _property_key(value: int | float | str) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.index = 0
        self.bindings: dict[str, Any] = {}
        self.depths: dict[str, int] = {}
        self.depth = 0
        self.peak = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _next(self) -> Token:
        tok = self.tokens[self.index]
        if tok.kind != "eof":
            self.index += 1
        return tok

    def _error(self, message: str, tok: Token | None = None) -> InterpreterSyntaxError:
        tok = tok or self.current
        return InterpreterSyntaxError(message, tok.line, tok.column)

    def _is(self, kind: str, value: Any = None) -> bool:
        tok = self.current
        return tok.kind == kind and (value is None or tok.value == value)

    def _check_depth(self, depth: int, tok: Token) -> None:
        if depth > MAX_DEPTH:
            raise self._error(f"nesting too deep (limit {MAX_DEPTH})", tok)
        self.peak = max(self.peak, depth)

    def _enter(self, depth: int, tok: Token) -> None:
        self._check_depth(depth, tok)
        self.depth = depth

    def _expect_punct(self, value: str) -> Token:
        if not self._is("punct", value):
            raise self._error(f"expected {value!r}, found {_describe(self.current)}")
        return self._next()

    def program(self) -> dict[str, Any]:
        while not self._is("eof"):
            if self._is("punct", ";"):
                self._next()
                continue
            self._statement()
            self._end_of_statement()
        return self.bindings

    def _statement(self) -> None:
        tok = self.current
        if tok.kind != "name":
            raise self._error(f"unexpected {_describe(tok)}")
        if tok.value in _DECLARATIONS:
            self._next()
            self._binding(declared=True)
            while self._is("punct", ","):
                self._next()
                self._binding(declared=True)
            return
        self._binding(declared=False)

    def _binding(self, declared: bool) -> None:
        tok = self._next()
        if tok.kind != "name":
            raise self._error(f"expected a name, found {_describe(tok)}", tok)
        name = tok.value
        if name in _RESERVED or name in _DECLARATIONS or name in _LITERALS:
            raise self._error(f"unsupported construct {name!r}", tok)
        if not self._is("punct", "="):
            if declared:
                self.bindings[name] = None
                return
            raise self._error(f"expected '=' after {name!r}, found {_describe(self.current)}")
        self._next()
        self.peak = 0
        self.bindings[name] = self._value()
        self.depths[name] = self.peak

    def _end_of_statement(self) -> None:
        tok = self.current
        if tok.kind == "eof":
            return
        if tok.kind == "punct" and tok.value == ";":
            self._next()
            return
        if tok.newline_before:
            return
        raise self._error(f"expected ';', found {_describe(tok)}")

    def _value(self) -> Any:
        tok = self._next()
        if tok.kind == "string" or tok.kind == "number":
            return tok.value
        if tok.kind == "punct":
            if tok.value in "{[":
                self._enter(self.depth + 1, tok)
                try:
                    return self._object() if tok.value == "{" else self._array()
                finally:
                    self.depth -= 1
            if tok.value in "+-" and self._is("number"):
                number = self._next().value
                return -number if tok.value == "-" else number
            raise self._error(f"unexpected {_describe(tok)}", tok)
        if tok.kind == "name":
            if tok.value in _LITERALS:
                return _LITERALS[tok.value]
            if tok.value in _RESERVED or tok.value in _DECLARATIONS:
                raise self._error(f"unsupported construct {tok.value!r}", tok)
            if tok.value not in self.bindings:
                raise self._error(f"reference to undefined name {tok.value!r}", tok)
            self._check_depth(self.depth + self.depths.get(tok.value, 0), tok)
            return copy.deepcopy(self.bindings[tok.value])
        raise self._error("unexpected end of input", tok)

    def _array(self) -> list:
        items: list = []
        while not self._is("punct", "]"):
            items.append(self._value())
            if self._is("punct", ","):
                self._next()
            elif not self._is("punct", "]"):
                raise self._error(f"expected ',' or ']', found {_describe(self.current)}")
        self._next()
        return items

    def _object(self) -> dict:
        obj: dict = {}
        while not self._is("punct", "}"):
            tok = self._next()
            if tok.kind in ("name", "string"):
                key = tok.value
            elif tok.kind == "number":
                key = _property_key(tok.value)
            else:
                raise self._error(f"expected a property name, found {_describe(tok)}", tok)
            self._expect_punct(":")
            obj[key] = self._value()
            if self._is("punct", ","):
                self._next()
            elif not self._is("punct", "}"):
                raise self._error(f"expected ',' or '}}', found {_describe(self.current)}")
        self._next()
        return obj


def _describe(tok: Token) -> str:
    if tok.kind == "eof":
        return "end of input"
    if tok.kind == "string":
        return "string literal"
    return repr(str(tok.value))


def interpret(block: str, required: Iterable[str] = REQUIRED_NAMES) -> dict[str, Any]:
    """Parse ``block`` and return the names it binds, in binding order.

    Raises InterpreterSyntaxError for anything outside the literal grammar
    and InterpreterMissingBinding when a name in ``required`` is never bound.
    """
    tokens = _Tokenizer(block).tokens()
    bindings = _Parser(tokens).program()
    missing = [name for name in required if name not in bindings]
    if missing:
        raise InterpreterMissingBinding(missing)
    logging.getLogger(__name__).debug(
        "block_interpreted tokens=%s names=%s", len(tokens), ",".join(bindings)
    )
    return bindings
