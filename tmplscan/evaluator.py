"""A small expression language for matchers and template helpers.

Numbers are floats, strings are quoted with single or double quotes
(a backslash takes the next character literally), variables are bare
identifiers or ``[bracketed names]``, and functions are called by name.
"""

from __future__ import annotations

import math
import operator
import re
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Optional

from .replacer import to_string

Function = Callable[..., Any]
_Node = Callable[[Mapping[str, Any]], Any]


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


_OPERATORS = sorted(
    [
        "**", "==", "!=", ">=", "<=", "=~", "!~", "&&", "||", "<<", ">>", "??",
        "+", "-", "*", "/", "%", ">", "<", "!", "~", "&", "|", "^", "?", ":",
        "(", ")", ",",
    ],
    key=len,
    reverse=True,
)
_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENT = re.compile(r"[^\W\d][\w.]*")

# Binary operator levels, loosest binding first.
_LEVELS: tuple[tuple[str, ...], ...] = (
    ("||",),
    ("&&",),
    ("==", "!=", ">", "<", ">=", "<=", "=~", "!~", "IN"),
    ("|",),
    ("^",),
    ("&",),
    ("<<", ">>"),
    ("+", "-"),
    ("*", "/", "%"),
)


@dataclass(frozen=True)
class _Token:
    kind: str
    value: Any


def _read_delimited(text: str, start: int, closing: str) -> tuple[str, int]:
    chars = []
    position = start
    while position < len(text):
        char = text[position]
        if char == "\\" and position + 1 < len(text):
            chars.append(text[position + 1])
            position += 2
            continue
        if char == closing:
            return "".join(chars), position + 1
        chars.append(char)
        position += 1
    raise ExpressionError(f"unclosed {closing!r} in expression")


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    position = 0
    while position < len(text):
        char = text[position]
        if char.isspace():
            position += 1
            continue
        if char.isdigit() or (char == "." and text[position + 1 : position + 2].isdigit()):
            match = _NUMBER.match(text, position)
            literal = match.group(0)
            if literal[:2].lower() == "0x":
                value = float(int(literal, 16))
            else:
                value = float(literal)
            tokens.append(_Token("num", value))
            position = match.end()
            continue
        if char in "'\"":
            value, position = _read_delimited(text, position + 1, char)
            tokens.append(_Token("str", value))
            continue
        if char == "[":
            value, position = _read_delimited(text, position + 1, "]")
            tokens.append(_Token("var", value))
            continue
        match = _IDENT.match(text, position)
        if match:
            word = match.group(0)
            if word in ("true", "false"):
                tokens.append(_Token("bool", word == "true"))
            elif word == "IN":
                tokens.append(_Token("op", "IN"))
            else:
                tokens.append(_Token("name", word))
            position = match.end()
            continue
        op = next((candidate for candidate in _OPERATORS if text.startswith(candidate, position)), None)
        if op is None:
            raise ExpressionError(f"invalid character {char!r} at position {position}")
        tokens.append(_Token("op", op))
        position += len(op)
    tokens.append(_Token("end", None))
    return tokens


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number(op: str, value: Any) -> float:
    if not _is_number(value):
        raise ExpressionError(f"value '{to_string(value)}' cannot be used with the operator '{op}'")
    return float(value)


def _integer(op: str, value: Any) -> int:
    number = _number(op, value)
    if not math.isfinite(number):
        raise ExpressionError(f"value '{to_string(value)}' cannot be used with the operator '{op}'")
    return int(number)


def _boolean(op: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ExpressionError(f"value '{to_string(value)}' cannot be used with the operator '{op}'")
    return value


def _normalize(value: Any) -> Any:
    if _is_number(value):
        return float(value)
    return value


def _add(a: Any, b: Any) -> Any:
    if isinstance(a, str) or isinstance(b, str):
        return to_string(a) + to_string(b)
    return _number("+", a) + _number("+", b)


def _subtract(a: Any, b: Any) -> float:
    return _number("-", a) - _number("-", b)


def _multiply(a: Any, b: Any) -> float:
    return _number("*", a) * _number("*", b)


def _divide(a: Any, b: Any) -> float:
    x, y = _number("/", a), _number("/", b)
    if y == 0:
        if x == 0 or math.isnan(x):
            return math.nan
        return math.copysign(math.inf, x) * math.copysign(1.0, y)
    return x / y


def _modulo(a: Any, b: Any) -> float:
    x, y = _number("%", a), _number("%", b)
    try:
        return math.fmod(x, y)
    except ValueError:
        return math.nan


def _power(a: Any, b: Any) -> float:
    x, y = _number("**", a), _number("**", b)
    try:
        return math.pow(x, y)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if _is_number(a) and _is_number(b):
        return float(a) == float(b)
    return a == b


def _not_equal(a: Any, b: Any) -> bool:
    return not _equal(a, b)


_ORDERINGS = {">": operator.gt, "<": operator.lt, ">=": operator.ge, "<=": operator.le}


def _ordered(op: str, a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return _ORDERINGS[op](float(a), float(b))
    if isinstance(a, str) and isinstance(b, str):
        return _ORDERINGS[op](a, b)
    raise ExpressionError(f"values '{to_string(a)}' and '{to_string(b)}' cannot be compared with '{op}'")


def _regex(negate: bool, a: Any, b: Any) -> bool:
    op = "!~" if negate else "=~"
    if not (isinstance(a, str) and isinstance(b, str)):
        raise ExpressionError(f"operator '{op}' needs string operands")
    try:
        found = re.search(b, a) is not None
    except re.error as exc:
        raise ExpressionError(f"invalid regular expression {b!r}: {exc}") from exc
    return found != negate


def _member(a: Any, b: Any) -> bool:
    if not isinstance(b, list):
        raise ExpressionError("operator 'IN' needs a list on its right")
    return any(_equal(a, item) for item in b)


_BITWISE = {
    "&": operator.and_,
    "|": operator.or_,
    "^": operator.xor,
    "<<": operator.lshift,
    ">>": operator.rshift,
}


def _bitwise(op: str, a: Any, b: Any) -> float:
    try:
        return float(_BITWISE[op](_integer(op, a), _integer(op, b)))
    except (ValueError, OverflowError) as exc:
        if isinstance(exc, ExpressionError):
            raise
        raise ExpressionError(f"operator '{op}' failed: {exc}") from exc


_BINARY: dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": _subtract,
    "*": _multiply,
    "/": _divide,
    "%": _modulo,
    "**": _power,
    "==": _equal,
    "!=": _not_equal,
    "=~": partial(_regex, False),
    "!~": partial(_regex, True),
    "IN": _member,
    **{op: partial(_ordered, op) for op in _ORDERINGS},
    **{op: partial(_bitwise, op) for op in _BITWISE},
}


def _constant(value: Any) -> _Node:
    return lambda params: value


def _variable(name: str) -> _Node:
    def run(params: Mapping[str, Any]) -> Any:
        try:
            value = params[name]
        except KeyError:
            raise ExpressionError(f"no parameter '{name}' found") from None
        return _normalize(value)

    return run


def _binary(op: str, left: _Node, right: _Node) -> _Node:
    apply = _BINARY[op]
    return lambda params: apply(left(params), right(params))


def _logical(op: str, left: _Node, right: _Node) -> _Node:
    def run(params: Mapping[str, Any]) -> bool:
        first = _boolean(op, left(params))
        if op == "||" and first:
            return True
        if op == "&&" and not first:
            return False
        return _boolean(op, right(params))

    return run


def _prefix(op: str, operand: _Node) -> _Node:
    if op == "-":
        return lambda params: -_number(op, operand(params))
    if op == "!":
        return lambda params: not _boolean(op, operand(params))
    return lambda params: float(~_integer(op, operand(params)))


def _conditional(condition: _Node, then: _Node, other: _Node) -> _Node:
    def run(params: Mapping[str, Any]) -> Any:
        if _boolean("?", condition(params)):
            return then(params)
        return other(params)

    return run


def _coalesce(left: _Node, right: _Node) -> _Node:
    def run(params: Mapping[str, Any]) -> Any:
        value = left(params)
        return right(params) if value is None else value

    return run


def _call(name: str, function: Function, arguments: list[_Node]) -> _Node:
    def run(params: Mapping[str, Any]) -> Any:
        values = [argument(params) for argument in arguments]
        try:
            return function(*values)
        except ExpressionError:
            raise
        except Exception as exc:
            raise ExpressionError(f"function {name} failed: {exc}") from exc

    return run


class _Parser:
    def __init__(self, tokens: list[_Token], functions: Mapping[str, Function]) -> None:
        self._tokens = tokens
        self._position = 0
        self._functions = functions

    def _peek(self) -> _Token:
        return self._tokens[self._position]

    def _accept(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token.kind == "op" and token.value in ops:
            self._position += 1
            return token.value
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            raise ExpressionError(f"expected {op!r} in expression")

    def parse(self) -> _Node:
        node = self._ternary()
        if self._peek().kind != "end":
            raise ExpressionError(f"unexpected token {self._peek().value!r}")
        return node

    def _ternary(self) -> _Node:
        node = self._level(0)
        while True:
            if self._accept("??") is not None:
                node = _coalesce(node, self._level(0))
            elif self._accept("?") is not None:
                then = self._ternary()
                self._expect(":")
                node = _conditional(node, then, self._ternary())
            else:
                return node

    def _level(self, index: int) -> _Node:
        if index == len(_LEVELS):
            return self._exponent()
        ops = _LEVELS[index]
        node = self._level(index + 1)
        while (op := self._accept(*ops)) is not None:
            right = self._level(index + 1)
            node = _logical(op, node, right) if op in ("&&", "||") else _binary(op, node, right)
        return node

    def _exponent(self) -> _Node:
        base = self._unary()
        if self._accept("**") is not None:
            return _binary("**", base, self._exponent())
        return base

    def _unary(self) -> _Node:
        op = self._accept("-", "!", "~")
        if op is not None:
            return _prefix(op, self._unary())
        return self._primary()

    def _primary(self) -> _Node:
        token = self._peek()
        if token.kind in ("num", "str", "bool"):
            self._position += 1
            return _constant(token.value)
        if token.kind == "var":
            self._position += 1
            return _variable(token.value)
        if token.kind == "name":
            self._position += 1
            if self._accept("(") is not None:
                function = self._functions.get(token.value)
                if function is None:
                    raise ExpressionError(f"unknown function: {token.value}")
                return _call(token.value, function, self._arguments())
            return _variable(token.value)
        if self._accept("(") is not None:
            items = [self._ternary()]
            while self._accept(",") is not None:
                items.append(self._ternary())
            self._expect(")")
            if len(items) == 1:
                return items[0]
            return lambda params: [item(params) for item in items]
        raise ExpressionError(f"unexpected token {token.value!r}")

    def _arguments(self) -> list[_Node]:
        if self._accept(")") is not None:
            return []
        arguments = [self._ternary()]
        while self._accept(",") is not None:
            arguments.append(self._ternary())
        self._expect(")")
        return arguments


class Expression:
    """A parsed expression that can be evaluated against parameters."""

    def __init__(self, text: str, functions: Optional[Mapping[str, Function]] = None) -> None:
        self.text = text
        self._functions = dict(functions or {})
        tokens = _tokenize(text)
        if len(tokens) == 1:
            raise ExpressionError("empty expression")
        self._root = _Parser(tokens, self._functions).parse()

    def evaluate(self, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        """Evaluate the expression; raises ExpressionError on failure."""
        return self._root(parameters or {})

    def __repr__(self) -> str:
        return f"Expression({self.text!r})"