"""Case-insensitive equality checks for string collections."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence


def _equal_fold(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


def string_slice(a: Optional[Sequence[str]], b: Optional[Sequence[str]]) -> bool:
    """Compare two string sequences element-wise, ignoring case."""
    if (a is None) != (b is None):
        return False
    if a is None or b is None:
        return True
    if len(a) != len(b):
        return False
    return all(_equal_fold(x, y) for x, y in zip(a, b))


def string_map(a: Optional[Mapping[str, str]], b: Optional[Mapping[str, str]]) -> bool:
    """Compare two string maps: same keys, values equal ignoring case."""
    if (a is None) != (b is None):
        return False
    if a is None or b is None:
        return True
    if len(a) != len(b):
        return False
    return all(key in b and _equal_fold(value, b[key]) for key, value in a.items())