"""Extractors that pull values out of protocol output."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .matchers import CompileError
from .replacer import to_string


class ExtractorType(enum.Enum):
    """The kind of extraction an extractor performs."""

    REGEX = "regex"
    KVAL = "kval"


@dataclass
class Extractor:
    """A single extractor definition from a template."""

    name: str = ""
    type: str = ""
    regex: list[str] = field(default_factory=list)
    group: int = 0
    kval: list[str] = field(default_factory=list)
    part: str = ""
    internal: bool = False

    _extractor_type: Optional[ExtractorType] = field(default=None, init=False, repr=False, compare=False)
    _regex_compiled: list[re.Pattern] = field(default_factory=list, init=False, repr=False, compare=False)

    @property
    def extractor_type(self) -> Optional[ExtractorType]:
        """The compiled extractor type, or None before compilation."""
        return self._extractor_type

    def compile(self) -> None:
        """Validate the definition and compile its regexes."""
        try:
            self._extractor_type = ExtractorType(self.type)
        except ValueError:
            raise CompileError(f"unknown extractor type specified: {self.type}") from None

        compiled = []
        for pattern in self.regex:
            try:
                compiled.append(re.compile(pattern))
            except re.error:
                raise CompileError(f"could not compile regex: {pattern}") from None
        self._regex_compiled = compiled

        self.kval = [key.lower() for key in self.kval]

        if not self.part:
            self.part = "body"

    def extract_regex(self, corpus: str) -> list[str]:
        """Return the unique values of the configured group across all matches."""
        found: dict[str, None] = {}
        for regex in self._regex_compiled:
            if self.group > regex.groups:
                continue
            for match in regex.finditer(corpus):
                found.setdefault(match.group(self.group) or "", None)
        return list(found)

    def extract_kval(self, data: Mapping[str, Any]) -> list[str]:
        """Return the unique string values of the configured keys present in ``data``."""
        found: dict[str, None] = {}
        for key in self.kval:
            if key in data:
                found.setdefault(to_string(data[key]), None)
        return list(found)