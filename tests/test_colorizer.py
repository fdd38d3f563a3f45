import re

import pytest

from tmplscan.colorizer import Aurora, severity_colors

ANSI = re.compile(r"\x1b\[[0-9;]*m")


def test_disabled_colors_pass_text_through():
    assert Aurora(False).paint("hello", "bold", "red") == "hello"


def test_enabled_colors_wrap_text():
    painted = Aurora(True).paint("hello", "red")
    assert painted.startswith("\x1b[")
    assert painted.endswith("\x1b[0m")
    assert ANSI.sub("", painted) == "hello"


def test_non_string_text_is_rendered():
    assert Aurora(False).paint(12, "bold") == "12"


def test_unknown_style_raises():
    with pytest.raises(ValueError):
        Aurora(True).paint("x", "no-such-style")


def test_severity_colors_without_color_are_plain_names():
    colors = severity_colors(Aurora(False))
    assert colors == {name: name for name in ("info", "low", "medium", "high", "critical")}


def test_severity_colors_with_color_strip_to_names():
    colors = severity_colors(Aurora(True))
    assert {ANSI.sub("", value) for value in colors.values()} == set(colors)
    assert all(value != key for key, value in colors.items())


def test_high_uses_orange_index():
    assert "38;5;208" in severity_colors(Aurora(True))["high"]