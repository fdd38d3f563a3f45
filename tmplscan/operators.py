"""Running matchers and extractors together over protocol output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from .extractors import Extractor
from .matchers import CompileError, ConditionType, Matcher

MatchFunc = Callable[[Mapping[str, Any], Matcher], bool]
ExtractFunc = Callable[[Mapping[str, Any], Extractor], Iterable[str]]


@dataclass
class OperatorResult:
    """What running the operators over one piece of data produced."""

    matched: bool = False
    extracted: bool = False
    matches: set[str] = field(default_factory=set)
    extracts: dict[str, list[str]] = field(default_factory=dict)
    output_extracts: list[str] = field(default_factory=list)
    dynamic_values: dict[str, Any] = field(default_factory=dict)
    payload_values: dict[str, Any] = field(default_factory=dict)


@dataclass
class Operators:
    """The matchers and extractors attached to a protocol request."""

    matchers: list[Matcher] = field(default_factory=list)
    extractors: list[Extractor] = field(default_factory=list)
    matchers_condition: str = ""

    _condition: Optional[ConditionType] = field(default=None, init=False, repr=False, compare=False)

    @property
    def condition(self) -> Optional[ConditionType]:
        """The compiled condition between matchers."""
        return self._condition

    def compile(self) -> None:
        """Compile the condition and every matcher and extractor."""
        if self.matchers_condition:
            try:
                self._condition = ConditionType(self.matchers_condition)
            except ValueError:
                self._condition = None
        else:
            self._condition = ConditionType.OR

        for matcher in self.matchers:
            try:
                matcher.compile()
            except CompileError as exc:
                raise CompileError(f"could not compile matcher: {exc}") from exc
        for extractor in self.extractors:
            try:
                extractor.compile()
            except CompileError as exc:
                raise CompileError(f"could not compile extractor: {exc}") from exc

    def execute(
        self,
        data: Mapping[str, Any],
        match: MatchFunc,
        extract: ExtractFunc,
    ) -> Optional[OperatorResult]:
        """Run extractors then matchers; return a result, or None if nothing matched."""
        condition = self._condition
        result = OperatorResult()

        for extractor in self.extractors:
            extracted = []
            for value in extract(data, extractor):
                extracted.append(value)
                if extractor.internal:
                    result.dynamic_values.setdefault(extractor.name, value)
                else:
                    result.output_extracts.append(value)
            if extracted and not extractor.internal and extractor.name:
                result.extracts[extractor.name] = extracted

        matches = False
        for matcher in self.matchers:
            if not match(data, matcher):
                if condition is ConditionType.AND:
                    return result if result.dynamic_values else None
            else:
                if condition is ConditionType.OR and matcher.name:
                    result.matches.add(matcher.name)
                matches = True

        result.matched = matches
        result.extracted = bool(result.output_extracts)
        if result.dynamic_values:
            return result
        if self.matchers and not matches:
            return None
        if result.extracts or result.output_extracts or matches:
            return result
        return None