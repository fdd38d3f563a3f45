"""ANSI colouring and the severity colour table."""

from __future__ import annotations

from typing import Any, Union

_CODES = {
    "bold": "1",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "cyan": "36",
    "bright_green": "92",
    "bright_yellow": "93",
    "bright_blue": "94",
    "bright_cyan": "96",
    "bg_bright_blue": "104",
}

FG_ORANGE = 208


class Aurora:
    """Applies ANSI styles to text, or passes text through when disabled."""

    def __init__(self, colors: bool) -> None:
        self.colors = colors

    def paint(self, text: Any, *args: Union[str, int]) -> str:
        """Style ``text`` with named styles or 256-colour foreground indexes."""
        codes = []
        for style in args:
            if isinstance(style, int):
                codes.append(f"38;5;{style}")
            elif style in _CODES:
                codes.append(_CODES[style])
            else:
                raise ValueError(f"unknown style: {style}")
        rendered = str(text)
        if not self.colors or not codes:
            return rendered
        return f"\x1b[{';'.join(codes)}m{rendered}\x1b[0m"


def severity_colors(aurora: Aurora) -> dict[str, str]:
    """Return the coloured label for each severity level."""
    return {
        "info": aurora.paint("info", "blue"),
        "low": aurora.paint("low", "green"),
        "medium": aurora.paint("medium", "yellow"),
        "high": aurora.paint("high", FG_ORANGE),
        "critical": aurora.paint("critical", "red"),
    }