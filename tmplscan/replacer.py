"""Placeholder substitution for template values."""

from __future__ import annotations

import re
from typing import Any, Mapping

MARKER_GENERAL = "§"
MARKER_PARENTHESIS_OPEN = "{{"
MARKER_PARENTHESIS_CLOSE = "}}"


def to_string(value: Any) -> str:
    """Render an arbitrary value as the string used in templates."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(to_string(item) for item in value) + "]"
    return str(value)


def replace(template: str, values: Mapping[str, Any]) -> str:
    """Replace ``{{key}}`` and ``§key§`` markers in one pass.

    Replacements are not rescanned, so a substituted value that itself
    looks like a marker is left as it is.
    """
    if not values:
        return template

    replacements: dict[str, str] = {}
    for key, value in values.items():
        rendered = to_string(value)
        for marker in (
            f"{MARKER_PARENTHESIS_OPEN}{key}{MARKER_PARENTHESIS_CLOSE}",
            f"{MARKER_GENERAL}{key}{MARKER_GENERAL}",
        ):
            replacements.setdefault(marker, rendered)

    pattern = re.compile("|".join(re.escape(marker) for marker in replacements))
    return pattern.sub(lambda match: replacements[match.group(0)], template)