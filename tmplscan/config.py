"""Templates configuration kept in the user's configuration directory."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

VERSION = "2.3.2"
CONFIG_FILENAME = ".templates-config.json"
NUCLEI_IGNORE_FILE = ".nuclei-ignore"
TEMPLATES_OWNER = "projectdiscovery"
TEMPLATES_REPOSITORY = "nuclei-templates"
DEFAULT_IGNORE_URL = (
    f"https://raw.githubusercontent.com/{TEMPLATES_OWNER}/{TEMPLATES_REPOSITORY}"
    f"/master/{NUCLEI_IGNORE_FILE}"
)

_ZERO_TIME = "0001-01-01T00:00:00Z"
_FRACTION = re.compile(r"\.(\d+)")

_BANNER = r"""
                       __     _
     ____  __  _______/ /__  (_)
    / __ \/ / / / ___/ / _ \/ /
   / / / / /_/ / /__/ /  __/ /
  /_/ /_/\__,_/\___/_/\___/_/   v%VERSION%
"""


def default_config_dir() -> str:
    """Return the directory holding the configuration and ignore files."""
    return str(Path.home() / ".config" / "nuclei")


def _parse_time(value: Any) -> Optional[datetime]:
    if not value or value == _ZERO_TIME:
        return None
    text = str(value)
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
    moment = datetime.fromisoformat(text)
    if moment.year == 1 and moment.month == 1 and moment.day == 1 and not moment.time():
        return None
    return moment


def _format_time(moment: Optional[datetime]) -> str:
    if moment is None:
        return _ZERO_TIME
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.isoformat()


@dataclass
class TemplatesConfig:
    """Where templates live, which version is installed and when it was checked."""

    templates_directory: str = ""
    current_version: str = ""
    last_checked: Optional[datetime] = None
    ignore_url: str = ""
    nuclei_version: str = ""
    last_checked_ignore: Optional[datetime] = None
    ignore_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty strings and lists."""
        data: dict[str, Any] = {}
        if self.templates_directory:
            data["templates-directory"] = self.templates_directory
        if self.current_version:
            data["current-version"] = self.current_version
        data["last-checked"] = _format_time(self.last_checked)
        if self.ignore_url:
            data["ignore-url"] = self.ignore_url
        if self.nuclei_version:
            data["nuclei-version"] = self.nuclei_version
        data["last-checked-ignore"] = _format_time(self.last_checked_ignore)
        if self.ignore_paths:
            data["ignore-paths"] = list(self.ignore_paths)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplatesConfig":
        """Build from the JSON form."""
        return cls(
            templates_directory=data.get("templates-directory", "") or "",
            current_version=data.get("current-version", "") or "",
            last_checked=_parse_time(data.get("last-checked")),
            ignore_url=data.get("ignore-url", "") or "",
            nuclei_version=data.get("nuclei-version", "") or "",
            last_checked_ignore=_parse_time(data.get("last-checked-ignore")),
            ignore_paths=list(data.get("ignore-paths") or []),
        )


def read_configuration(config_dir: Optional[str] = None) -> TemplatesConfig:
    """Read the configuration file; raises OSError or ValueError on failure."""
    directory = config_dir or default_config_dir()
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, CONFIG_FILENAME), encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("configuration file does not hold an object")
    return TemplatesConfig.from_dict(data)


def write_configuration(config: TemplatesConfig, config_dir: Optional[str] = None) -> None:
    """Stamp the configuration with the current time and version and save it."""
    directory = config_dir or default_config_dir()
    os.makedirs(directory, exist_ok=True)
    if not config.ignore_url:
        config.ignore_url = DEFAULT_IGNORE_URL
    now = datetime.now().astimezone()
    config.last_checked = now
    config.last_checked_ignore = now
    config.nuclei_version = VERSION
    with open(os.path.join(directory, CONFIG_FILENAME), "w", encoding="utf-8") as handle:
        json.dump(config.to_dict(), handle)
        handle.write("\n")


def read_ignore_file(path: str) -> list[str]:
    """Return the rules in an ignore file, skipping blank lines and comments."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return [line for line in text.splitlines() if line and not line.startswith("#")]


def ignore_file_path(config_dir: Optional[str] = None, cwd: Optional[str] = None) -> str:
    """Prefer an ignore file in the working directory, else the configured one."""
    directory = config_dir or default_config_dir()
    os.makedirs(directory, exist_ok=True)
    default = os.path.join(directory, NUCLEI_IGNORE_FILE)
    try:
        working = cwd if cwd is not None else os.getcwd()
    except OSError:
        return default
    candidate = os.path.join(working, NUCLEI_IGNORE_FILE)
    if not os.path.exists(candidate) or os.path.isdir(candidate):
        return default
    return candidate


def banner() -> str:
    """Return the banner shown when the scanner starts."""
    return (
        _BANNER.replace("%VERSION%", VERSION)
        + "\n"
        + "Use with caution. You are responsible for your actions\n"
        + "Developers assume no liability and are not responsible for any misuse or damage.\n"
    )