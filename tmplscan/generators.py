"""Payload generators for sniper, pitchfork and clusterbomb attacks."""

from __future__ import annotations

import enum
import os
import posixpath
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from .replacer import to_string


class AttackType(enum.Enum):
    """How payload lists are combined into requests."""

    SNIPER = "sniper"
    PITCHFORK = "pitchfork"
    CLUSTERBOMB = "clusterbomb"


class PayloadError(ValueError):
    """Raised when payloads are invalid or cannot be loaded."""


def _to_string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [to_string(item) for item in value]
    return []


def _file_exists(path: str) -> bool:
    return os.path.isfile(path)


def _path_join(base: str, name: str) -> str:
    parts = [part for part in (base, name) if part]
    if not parts:
        return ""
    return posixpath.normpath("/".join(parts))


def _validate(payloads: dict[str, Any], template_path: str) -> None:
    for name, payload in list(payloads.items()):
        if payload is None:
            raise PayloadError(f"the payload {name} has invalid type")
        if isinstance(payload, str):
            if len(payload.split("\n")) != 1:
                raise PayloadError("invalid number of lines in payload")
            if _file_exists(payload):
                continue
            tokens = template_path.split("/")
            for i in range(len(tokens)):
                candidate = _path_join("/".join(tokens[:i]), payload)
                if _file_exists(candidate):
                    payloads[name] = candidate
                    break
            else:
                raise PayloadError(
                    f"the {payload} file for payload {name} does not exist "
                    "or does not contain enough elements"
                )
        elif not _to_string_list(payload):
            raise PayloadError(f"the payload {name} does not contain enough elements")


def load_payloads_from_file(path: str) -> list[str]:
    """Read the non-empty lines of a wordlist file."""
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    return [line for line in text.splitlines() if line]


def load_payloads(payloads: Mapping[str, Any]) -> dict[str, list[str]]:
    """Turn payload definitions into lists of strings.

    Multi-line strings are split into lines, single-line strings are read
    as wordlist files, and anything else is converted to a string list.
    """
    loaded: dict[str, list[str]] = {}
    for name, payload in payloads.items():
        if payload is None:
            continue
        if isinstance(payload, str):
            elements = payload.split("\n")
            if len(elements) >= 2:
                loaded[name] = elements
            else:
                try:
                    loaded[name] = load_payloads_from_file(payload)
                except OSError as exc:
                    raise PayloadError(f"could not load payloads: {exc}") from exc
        else:
            loaded[name] = _to_string_list(payload)
    return loaded


class Generator:
    """Holds validated payload lists and hands out iterators over them."""

    def __init__(
        self,
        payloads: Mapping[str, Any],
        attack_type: AttackType,
        template_path: str,
    ) -> None:
        checked = dict(payloads)
        _validate(checked, template_path)
        compiled = load_payloads(checked)

        if attack_type is AttackType.PITCHFORK:
            lengths = {len(values) for values in compiled.values()}
            if len(lengths) > 1:
                raise PayloadError("pitchfork payloads must be of equal number")

        self.attack_type = attack_type
        self.payloads = compiled

    def new_iterator(self) -> "PayloadIterator":
        """Return a fresh iterator over the payload combinations."""
        return PayloadIterator(self.attack_type, self.payloads)


class _PayloadList:
    __slots__ = ("name", "values", "index")

    def __init__(self, name: str, values: list[str]) -> None:
        self.name = name
        self.values = values
        self.index = 0

    def has_next(self) -> bool:
        return self.index < len(self.values)

    def current(self) -> str:
        return self.values[self.index]


class PayloadIterator:
    """Yields dictionaries of payload name to value for each request."""

    def __init__(self, attack_type: AttackType, payloads: Mapping[str, list[str]]) -> None:
        self.attack_type = attack_type
        self._payloads = [_PayloadList(name, values) for name, values in payloads.items()]
        self._position = 0
        self._msb = 0
        self._total = self.total()

    def reset(self) -> None:
        """Rewind the iterator to its first combination."""
        self._position = 0
        self._msb = 0
        for payload in self._payloads:
            payload.index = 0

    def remaining(self) -> int:
        """Number of combinations not yet produced."""
        return self._total - self._position

    def total(self) -> int:
        """Number of combinations the iterator produces."""
        if self.attack_type is AttackType.PITCHFORK:
            return len(self._payloads[0].values) if self._payloads else 0
        if self.attack_type is AttackType.CLUSTERBOMB:
            count = 1
            for payload in self._payloads:
                count *= len(payload.values)
            return count
        return sum(len(payload.values) for payload in self._payloads)

    def value(self) -> Optional[dict[str, str]]:
        """Return the next combination, or None once exhausted."""
        if self.attack_type is AttackType.PITCHFORK:
            return self._pitchfork_value()
        if self.attack_type is AttackType.CLUSTERBOMB:
            return self._clusterbomb_value()
        return self._sniper_value()

    def __iter__(self) -> Iterator[dict[str, str]]:
        return self

    def __next__(self) -> dict[str, str]:
        result = self.value()
        if result is None:
            raise StopIteration
        return result

    def _sniper_value(self) -> Optional[dict[str, str]]:
        while self._msb < len(self._payloads):
            payload = self._payloads[self._msb]
            if payload.has_next():
                values = {payload.name: payload.current()}
                payload.index += 1
                self._position += 1
                return values
            self._msb += 1
        return None

    def _pitchfork_value(self) -> Optional[dict[str, str]]:
        values = {}
        for payload in self._payloads:
            if not payload.has_next():
                return None
            values[payload.name] = payload.current()
            payload.index += 1
        self._position += 1
        return values

    def _clusterbomb_value(self) -> Optional[dict[str, str]]:
        while True:
            if self._position >= self._total:
                return None
            values = {}
            signal_next = False
            first = True
            restart = False
            for index, payload in enumerate(self._payloads):
                if signal_next:
                    payload.index += 1
                    signal_next = False
                if not payload.has_next():
                    if index == self._msb:
                        self._msb += 1
                        self._clusterbomb_reset()
                        restart = True
                        break
                    payload.index = 0
                    signal_next = True
                values[payload.name] = payload.current()
                if first:
                    payload.index += 1
                    first = False
            if restart:
                continue
            self._position += 1
            return values

    def _clusterbomb_reset(self) -> None:
        for index, payload in enumerate(self._payloads):
            if index < self._msb:
                payload.index = 0
            if index == self._msb:
                payload.index += 1


def merge_maps(m1: Mapping[str, Any], m2: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new map holding m1 overlaid with m2."""
    return {**m1, **m2}


def expand_map_values(m: Mapping[str, str]) -> dict[str, list[str]]:
    """Wrap every value in a one-element list."""
    return {key: [value] for key, value in m.items()}


def copy_map_with_default_value(original: Mapping[str, Any], default: Any) -> dict[str, Any]:
    """Return a map with the same keys, each set to ``default``."""
    return dict.fromkeys(original, default)


def trim_delimiters(s: str) -> str:
    """Strip a leading ``{{`` and a trailing ``}}``."""
    return s.removeprefix("{{").removesuffix("}}")