"""Writing scan results to the screen, output files and trace logs."""

from __future__ import annotations

import json
import os
import re
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import IO, Any, Optional

from .colorizer import Aurora, severity_colors
from .replacer import to_string

_DECOLORIZER = re.compile(r"\x1B\[[0-9;]*[a-zA-Z]")
_HTML_SAFE = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026", "\u2028": "\\u2028", "\u2029": "\\u2029"}
_HTML_SAFE_PATTERN = re.compile("[<>&\u2028\u2029]")
_ZERO_TIME = "0001-01-01T00:00:00Z"


def strip_colors(text: str) -> str:
    """Remove ANSI colour escape sequences from ``text``."""
    return _DECOLORIZER.sub("", text)


def _rfc3339(moment: Optional[datetime]) -> str:
    if moment is None:
        return _ZERO_TIME
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += f".{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _dump(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=to_string)
    return _HTML_SAFE_PATTERN.sub(lambda match: _HTML_SAFE[match.group(0)], text)


@dataclass
class ResultEvent:
    """A single result found by a template."""

    template_id: str = ""
    info: Optional[dict[str, Any]] = None
    matcher_name: str = ""
    extractor_name: str = ""
    type: str = ""
    host: str = ""
    path: str = ""
    matched: str = ""
    extracted_results: list[str] = field(default_factory=list)
    request: str = ""
    response: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    ip: str = ""
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation, leaving out empty optional fields."""
        data: dict[str, Any] = {"templateID": self.template_id, "info": self.info}
        optional = (
            ("matcher_name", self.matcher_name),
            ("extractor_name", self.extractor_name),
        )
        data.update((key, value) for key, value in optional if value)
        data["type"] = self.type
        optional = (
            ("host", self.host),
            ("path", self.path),
            ("matched", self.matched),
            ("extracted_results", self.extracted_results),
        )
        data.update((key, value) for key, value in optional if value)
        data["request"] = self.request
        data["response"] = self.response
        optional = (("meta", self.metadata), ("ip", self.ip))
        data.update((key, value) for key, value in optional if value)
        data["timestamp"] = _rfc3339(self.timestamp)
        return data


class _FileWriter:
    """Writes one record per line to a file."""

    def __init__(self, path: str) -> None:
        self._file: IO[str] = open(path, "w", encoding="utf-8")

    def write(self, data: str) -> None:
        self._file.write(data)
        self._file.write("\n")

    def close(self) -> None:
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        except OSError:
            pass
        self._file.close()


class StandardWriter:
    """Writes results to stdout and optionally to an output and a trace file."""

    def __init__(
        self,
        colors: bool = True,
        no_metadata: bool = False,
        json_output: bool = False,
        file: Optional[str] = "",
        trace_file: Optional[str] = "",
    ) -> None:
        self.json = json_output
        self.no_metadata = no_metadata
        self.aurora = Aurora(colors)
        self.severity_colors = severity_colors(self.aurora)
        self._output_lock = threading.Lock()
        self._trace_lock = threading.Lock()
        self._output_file = _FileWriter(file) if file else None
        try:
            self._trace_file = _FileWriter(trace_file) if trace_file else None
        except OSError:
            if self._output_file is not None:
                self._output_file.close()
            raise

    def format_screen(self, event: ResultEvent) -> str:
        """Format a result as a human-readable line."""
        paint = self.aurora.paint
        parts: list[str] = []
        if not self.no_metadata:
            stamp = event.timestamp.strftime("%Y-%m-%d %H:%M:%S") if event.timestamp else ""
            parts.append(f"[{paint(stamp, 'cyan')}] ")
            parts.append(f"[{paint(event.template_id, 'bright_green')}")
            name = event.matcher_name or event.extractor_name
            if name:
                parts.append(":" + paint(name, "bright_green", "bold"))
            parts.append(f"] [{paint(event.type, 'bright_blue')}] ")
            severity = to_string((event.info or {}).get("severity"))
            parts.append(f"[{self.severity_colors.get(severity, '')}] ")
        parts.append(event.matched)

        if event.extracted_results:
            items = ",".join(paint(item, "bright_cyan") for item in event.extracted_results)
            parts.append(f" [{items}]")

        if event.metadata:
            items = ",".join(
                f"{paint(name, 'bright_yellow')}={paint(to_string(value), 'bright_yellow')}"
                for name, value in event.metadata.items()
            )
            parts.append(f" [{items}]")
        return "".join(parts)

    def format_json(self, event: ResultEvent) -> str:
        """Format a result as a single JSON document."""
        return _dump(event.to_dict())

    def write(self, event: ResultEvent) -> None:
        """Stamp the event with the current time and write it out."""
        event.timestamp = datetime.now().astimezone()
        data = self.format_json(event) if self.json else self.format_screen(event)
        if not data:
            return
        with self._output_lock:
            sys.stdout.write(data + "\n")
            sys.stdout.flush()
            if self._output_file is not None:
                self._output_file.write(data if self.json else strip_colors(data))

    def request(
        self,
        template_id: str,
        url: str,
        request_type: str,
        error: Optional[BaseException] = None,
    ) -> None:
        """Append a request record to the trace log, if one is open."""
        if self._trace_file is None:
            return
        record = {
            "id": template_id,
            "url": url,
            "error": str(error) if error is not None else "none",
            "type": request_type,
        }
        with self._trace_lock:
            self._trace_file.write(_dump(record))

    def close(self) -> None:
        """Flush and close the output and trace files."""
        if self._output_file is not None:
            self._output_file.close()
            self._output_file = None
        if self._trace_file is not None:
            self._trace_file.close()
            self._trace_file = None

    def __enter__(self) -> "StandardWriter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()