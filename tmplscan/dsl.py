"""Helper functions available inside matcher and template expressions."""

from __future__ import annotations

import base64
import hashlib
import html
import random
import re
import struct
import time
from typing import Any, Callable
from urllib.parse import quote, unquote_to_bytes

from .replacer import to_string

NUMBERS = "1234567890"
LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_INT32 = 2147483647

_MASK = 0xFFFFFFFF
_HTML_ESCAPES = str.maketrans({"&": "&amp;", "'": "&#39;", "<": "&lt;", ">": "&gt;", '"': "&#34;"})
_BAD_URL_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")
_HEX_PREFIX = re.compile(r"(?:[0-9a-fA-F]{2})*")
_GO_TEMPLATE_REF = re.compile(r"\$(?:\$|\{(\w+)\}|(\w+))")


def reverse_string(s: str) -> str:
    """Reverse a string character by character."""
    return s[::-1]


def trim_all(s: str, cutset: str) -> str:
    """Remove every occurrence of each character of ``cutset`` from ``s``."""
    for char in cutset:
        s = s.replace(char, "")
    return s


def rand_seq(base: str, n: int) -> str:
    """Return ``n`` characters chosen at random from ``base``."""
    if n < 0:
        raise ValueError("length must not be negative")
    if n and not base:
        raise ValueError("no characters left to choose from")
    return "".join(random.choice(base) for _ in range(n))


def insert_into(s: str, interval: int, sep: str) -> str:
    """Insert ``sep`` after every ``interval`` bytes of ``s`` and at the end."""
    parts = []
    before = interval - 1
    last = len(s.encode("utf-8")) - 1
    offset = 0
    for char in s:
        parts.append(char)
        if offset % interval == before and offset != last:
            parts.append(sep)
        offset += len(char.encode("utf-8"))
    parts.append(sep)
    return "".join(parts)


def _rotl(value: int, count: int) -> int:
    return ((value << count) | (value >> (32 - count))) & _MASK


def murmur3_32(data: bytes, seed: int = 0) -> int:
    """Compute the unsigned 32-bit MurmurHash3 of ``data``."""
    c1, c2 = 0xCC9E2D51, 0x1B873593
    h = seed & _MASK
    rounded = len(data) - len(data) % 4
    for (k,) in struct.iter_unpack("<I", data[:rounded]):
        k = _rotl((k * c1) & _MASK, 15)
        h ^= (k * c2) & _MASK
        h = (_rotl(h, 13) * 5 + 0xE6546B64) & _MASK
    tail = data[rounded:]
    if tail:
        k = int.from_bytes(tail, "little")
        k = _rotl((k * c1) & _MASK, 15)
        h ^= (k * c2) & _MASK
    h ^= len(data)
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK
    h ^= h >> 16
    return h


def _arg_string(args: tuple, index: int, default: str = "") -> str:
    return to_string(args[index]) if len(args) > index else default


def _arg_int(args: tuple, index: int, default: int) -> int:
    return int(args[index]) if len(args) > index else default


def _expand_template(match: re.Match, template: str) -> str:
    def reference(ref: re.Match) -> str:
        name = ref.group(1) or ref.group(2)
        if name is None:
            return "$"
        try:
            value = match.group(int(name) if name.isdigit() else name)
        except IndexError:
            return ""
        return value or ""

    return _GO_TEMPLATE_REF.sub(reference, template)


def _len(*args: Any) -> float:
    return float(len(to_string(args[0]).encode("utf-8")))


def _replace_regex(*args: Any) -> str:
    compiled = re.compile(to_string(args[1]))
    template = to_string(args[2])
    return compiled.sub(lambda match: _expand_template(match, template), to_string(args[0]))


def _base64(*args: Any) -> str:
    return base64.b64encode(to_string(args[0]).encode("utf-8")).decode("ascii")


def _base64_py(*args: Any) -> str:
    return insert_into(_base64(*args), 76, "\n")


def _base64_decode(*args: Any) -> bytes:
    return base64.b64decode(to_string(args[0]), validate=True)


def _url_encode(*args: Any) -> str:
    return quote(to_string(args[0]), safe="$&+:=@")


def _url_decode(*args: Any) -> str:
    text = to_string(args[0])
    if _BAD_URL_ESCAPE.search(text):
        raise ValueError(f"invalid URL escape in {text!r}")
    return unquote_to_bytes(text).decode("utf-8", errors="replace")


def _hex_encode(*args: Any) -> str:
    return to_string(args[0]).encode("utf-8").hex()


def _hex_decode(*args: Any) -> str:
    valid = _HEX_PREFIX.match(to_string(args[0])).group(0)
    return bytes.fromhex(valid).decode("utf-8", errors="replace")


def _digest(name: str) -> Callable[..., str]:
    def run(*args: Any) -> str:
        return hashlib.new(name, to_string(args[0]).encode("utf-8")).hexdigest()

    return run


def _mmh3(*args: Any) -> str:
    value = murmur3_32(to_string(args[0]).encode("utf-8"), 0)
    if value >= 1 << 31:
        value -= 1 << 32
    return str(value)


def _regex(*args: Any) -> bool:
    return re.search(to_string(args[0]), to_string(args[1])) is not None


def _rand_char(*args: Any) -> str:
    chars = trim_all(_arg_string(args, 0, LETTERS + NUMBERS), _arg_string(args, 1))
    if not chars:
        raise ValueError("no characters left to choose from")
    return random.choice(chars)


def _rand_base(*args: Any) -> str:
    base = trim_all(_arg_string(args, 2, LETTERS + NUMBERS), _arg_string(args, 1))
    return rand_seq(base, _arg_int(args, 0, 0))


def _rand_text(chars: str) -> Callable[..., str]:
    def run(*args: Any) -> str:
        return rand_seq(trim_all(chars, _arg_string(args, 1)), _arg_int(args, 0, 0))

    return run


def _rand_int(*args: Any) -> int:
    low = _arg_int(args, 0, 0)
    high = _arg_int(args, 1, MAX_INT32)
    if high <= low:
        raise ValueError("maximum must be greater than minimum")
    return random.randrange(low, high)


def _waitfor(*args: Any) -> bool:
    time.sleep(int(float(args[0])))
    return True


def helper_functions() -> dict[str, Callable[..., Any]]:
    """Return the table of helper functions keyed by their expression name."""
    return {
        "len": _len,
        "toupper": lambda *args: to_string(args[0]).upper(),
        "tolower": lambda *args: to_string(args[0]).lower(),
        "replace": lambda *args: to_string(args[0]).replace(to_string(args[1]), to_string(args[2])),
        "replace_regex": _replace_regex,
        "trim": lambda *args: to_string(args[0]).strip(to_string(args[1])),
        "trimleft": lambda *args: to_string(args[0]).lstrip(to_string(args[1])),
        "trimright": lambda *args: to_string(args[0]).rstrip(to_string(args[1])),
        "trimspace": lambda *args: to_string(args[0]).strip(),
        "trimprefix": lambda *args: to_string(args[0]).removeprefix(to_string(args[1])),
        "trimsuffix": lambda *args: to_string(args[0]).removesuffix(to_string(args[1])),
        "reverse": lambda *args: reverse_string(to_string(args[0])),
        "base64": _base64,
        "base64_py": _base64_py,
        "base64_decode": _base64_decode,
        "url_encode": _url_encode,
        "url_decode": _url_decode,
        "hex_encode": _hex_encode,
        "hex_decode": _hex_decode,
        "html_escape": lambda *args: to_string(args[0]).translate(_HTML_ESCAPES),
        "html_unescape": lambda *args: html.unescape(to_string(args[0])),
        "md5": _digest("md5"),
        "sha256": _digest("sha256"),
        "sha1": _digest("sha1"),
        "mmh3": _mmh3,
        "contains": lambda *args: to_string(args[1]) in to_string(args[0]),
        "regex": _regex,
        "rand_char": _rand_char,
        "rand_base": _rand_base,
        "rand_text_alphanumeric": _rand_text(LETTERS + NUMBERS),
        "rand_text_alpha": _rand_text(LETTERS),
        "rand_text_numeric": _rand_text(NUMBERS),
        "rand_int": _rand_int,
        "waitfor": _waitfor,
    }