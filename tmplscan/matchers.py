"""Matchers that decide whether protocol output satisfies a template."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar

from .dsl import helper_functions
from .evaluator import Expression, ExpressionError

_T = TypeVar("_T")

_HEX_WORD = re.compile(r"(?:[0-9a-fA-F]{2})+")
_HEX_PREFIX = re.compile(r"(?:[0-9a-fA-F]{2})*")


class MatcherType(enum.Enum):
    """The kind of check a matcher performs."""

    WORDS = "word"
    REGEX = "regex"
    BINARY = "binary"
    STATUS = "status"
    SIZE = "size"
    DSL = "dsl"


class ConditionType(enum.Enum):
    """How multiple checks inside a matcher are combined."""

    AND = "and"
    OR = "or"


class CompileError(ValueError):
    """Raised when a matcher or extractor definition is invalid."""


def _decode_bytes(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


@dataclass
class Matcher:
    """A single matcher definition from a template."""

    type: str = ""
    condition: str = ""
    part: str = ""
    negative: bool = False
    name: str = ""
    status: list[int] = field(default_factory=list)
    size: list[int] = field(default_factory=list)
    words: list[str] = field(default_factory=list)
    regex: list[str] = field(default_factory=list)
    binary: list[str] = field(default_factory=list)
    dsl: list[str] = field(default_factory=list)
    encoding: str = ""

    _condition: Optional[ConditionType] = field(default=None, init=False, repr=False, compare=False)
    _matcher_type: Optional[MatcherType] = field(default=None, init=False, repr=False, compare=False)
    _regex_compiled: list[re.Pattern] = field(default_factory=list, init=False, repr=False, compare=False)
    _dsl_compiled: list[Expression] = field(default_factory=list, init=False, repr=False, compare=False)

    @property
    def matcher_type(self) -> Optional[MatcherType]:
        """The compiled matcher type, or None before compilation."""
        return self._matcher_type

    @property
    def condition_type(self) -> Optional[ConditionType]:
        """The compiled condition, or None before compilation."""
        return self._condition

    def compile(self) -> None:
        """Validate the definition and prepare regexes and expressions."""
        if self.encoding == "hex":
            self.words = [
                _decode_bytes(bytes.fromhex(word)) if _HEX_WORD.fullmatch(word) else word
                for word in self.words
            ]

        try:
            self._matcher_type = MatcherType(self.type)
        except ValueError:
            raise CompileError(f"unknown matcher type specified: {self.type}") from None

        if not self.part:
            self.part = "body"

        compiled_regexes = []
        for pattern in self.regex:
            try:
                compiled_regexes.append(re.compile(pattern))
            except re.error:
                raise CompileError(f"could not compile regex: {pattern}") from None
        self._regex_compiled = compiled_regexes

        functions = helper_functions()
        compiled_dsl = []
        for expression in self.dsl:
            try:
                compiled_dsl.append(Expression(expression, functions))
            except ExpressionError:
                raise CompileError(f"could not compile dsl: {expression}") from None
        self._dsl_compiled = compiled_dsl

        if self.condition:
            try:
                self._condition = ConditionType(self.condition)
            except ValueError:
                raise CompileError(f"unknown condition specified: {self.condition}") from None
        else:
            self._condition = ConditionType.OR

    def _combine(self, items: Sequence[_T], check: Callable[[_T], Optional[bool]]) -> bool:
        """Fold per-item outcomes with the matcher's condition.

        A check returning None is skipped without affecting the result.
        """
        last = len(items) - 1
        for index, item in enumerate(items):
            outcome = check(item)
            if outcome is None:
                continue
            if not outcome:
                if self._condition is ConditionType.AND:
                    return False
                continue
            if self._condition is ConditionType.OR or index == last:
                return True
        return False

    def match_status_code(self, status_code: int) -> bool:
        """Return True if the status code is one of the accepted ones."""
        return status_code in self.status

    def match_size(self, length: int) -> bool:
        """Return True if the length is one of the accepted sizes."""
        return length in self.size

    def match_words(self, corpus: str) -> bool:
        """Check the words against the corpus."""
        return self._combine(self.words, lambda word: word in corpus)

    def match_regex(self, corpus: str) -> bool:
        """Check the compiled regexes against the corpus."""
        return self._combine(self._regex_compiled, lambda regex: regex.search(corpus) is not None)

    def match_binary(self, corpus: str) -> bool:
        """Check hex-encoded byte sequences against the corpus."""

        def check(binary: str) -> bool:
            decoded = bytes.fromhex(_HEX_PREFIX.match(binary).group(0))
            return _decode_bytes(decoded) in corpus

        return self._combine(self.binary, check)

    def match_dsl(self, data: Mapping[str, Any]) -> bool:
        """Evaluate the compiled expressions against the data map."""

        def check(expression: Expression) -> Optional[bool]:
            try:
                outcome = expression.evaluate(data)
            except ExpressionError:
                return None
            return outcome is True

        return self._combine(self._dsl_compiled, check)

    def result(self, data: bool) -> bool:
        """Invert the outcome when the matcher is negative."""
        return not data if self.negative else data