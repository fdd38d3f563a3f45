"""Downloading template releases and keeping the local copy in step."""

from __future__ import annotations

import functools
import hashlib
import io
import json
import logging
import os
import posixpath
import re
import sys
import urllib.error
import urllib.request
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from .config import (
    DEFAULT_IGNORE_URL,
    NUCLEI_IGNORE_FILE,
    TEMPLATES_OWNER,
    TEMPLATES_REPOSITORY,
    VERSION,
    TemplatesConfig,
    default_config_dir,
    read_configuration,
    write_configuration,
)

log = logging.getLogger(__name__)

RELEASES_URL = f"https://api.github.com/repos/{TEMPLATES_OWNER}/{TEMPLATES_REPOSITORY}/releases"
CHECKSUM_FILE = ".checksum"
ADDITIONS_FILE = ".new-additions"

_VERSION_CORE = re.compile(r"\d+\.\d+\.\d+")
_SEMVER = re.compile(
    r"(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
)
_CHUNK = 64 * 1024


class UpdateError(Exception):
    """Raised when templates cannot be fetched, unpacked or recorded."""


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class _SemVer:
    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def _key(self) -> tuple:
        if not self.pre:
            pre_key: tuple = (1,)
        else:
            pre_key = (0, tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.pre))
        return (self.major, self.minor, self.patch, pre_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _SemVer):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "_SemVer") -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def parse_version(text: str) -> _SemVer:
    """Parse the semantic version starting at the first ``x.y.z`` in ``text``."""
    found = _VERSION_CORE.search(text)
    if found is None:
        raise UpdateError(f"invalid release found with tag {text}")
    candidate = text[found.start():]
    full = _SEMVER.fullmatch(candidate)
    if full is None:
        raise UpdateError(f"invalid semantic version: {candidate}")
    numbers = full.group(1, 2, 3)
    if any(len(number) > 1 and number.startswith("0") for number in numbers):
        raise UpdateError(f"invalid semantic version: {candidate}")
    pre = tuple(full.group(4).split(".")) if full.group(4) else ()
    if any(p.isdigit() and len(p) > 1 and p.startswith("0") for p in pre):
        raise UpdateError(f"invalid semantic version: {candidate}")
    build = tuple(full.group(5).split(".")) if full.group(5) else ()
    major, minor, patch = (int(number) for number in numbers)
    return _SemVer(major, minor, patch, pre, build)


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return posixpath.normpath("/".join(present))


def _md5_file(path: str) -> str:
    hasher = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def read_previous_checksum(path: str) -> dict[str, tuple[str, str]]:
    """Read the checksum file as path -> (recorded checksum, checksum on disk now)."""
    checksums: dict[str, tuple[str, str]] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle.read().splitlines():
            if not line:
                continue
            parts = line.split(",")
            if len(parts) < 2:
                continue
            checksums[parts[0]] = (parts[1], _md5_file(parts[0]))
    return checksums


def write_checksum(path: str, checksums: dict[str, str]) -> None:
    """Write one ``path,checksum`` line per template."""
    with open(path, "w", encoding="utf-8") as handle:
        handle.writelines(f"{name},{value}\n" for name, value in checksums.items())


@dataclass
class UpdateResults:
    """What an update changed in the templates directory."""

    additions: list[str] = field(default_factory=list)
    deletions: list[str] = field(default_factory=list)
    modifications: list[str] = field(default_factory=list)
    total_count: int = 0
    checksums: dict[str, str] = field(default_factory=dict)


def _render_table(headers: list[str], rows: list[list[str]]) -> str:
    widths = [max(len(header), *(len(row[i]) for row in rows)) for i, header in enumerate(headers)]
    border = "+" + "+".join("-" * (width + 2) for width in widths) + "+"
    lines = [border, "|" + "|".join(f" {h.upper().center(w)} " for h, w in zip(headers, widths)) + "|", border]
    for row in rows:
        lines.append("|" + "|".join(f" {c.rjust(w)} " for c, w in zip(row, widths)) + "|")
    lines.append(border)
    return "\n".join(lines) + "\n"


def changelog(results: UpdateResults, version: str) -> str:
    """Return the human-readable summary of an update."""
    parts = []
    if results.additions:
        parts.append("\nNewly added templates: \n\n")
        parts.extend(addition + "\n" for addition in results.additions)
    parts.append(f"\nNuclei Templates v{version} Changelog\n")
    row = [str(results.total_count), str(len(results.additions)), str(len(results.deletions))]
    parts.append(_render_table(["Total", "Added", "Removed"], [row]))
    return "".join(parts)


def _since(moment: Optional[datetime]) -> timedelta:
    if moment is None:
        return timedelta.max
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return datetime.now(timezone.utc) - moment


class TemplateUpdater:
    """Installs and updates the templates described by a configuration."""

    def __init__(self, config: Optional[TemplatesConfig] = None, config_dir: Optional[str] = None) -> None:
        self.config = config
        self.config_dir = config_dir or default_config_dir()

    def _templates_directory(self) -> str:
        if self.config is None or not self.config.templates_directory:
            raise UpdateError("no templates directory configured")
        return self.config.templates_directory

    def download_release_and_unzip(self, version: str, download_url: str) -> UpdateResults:
        """Fetch a release archive, write its templates and record the changes."""
        directory = self._templates_directory()
        try:
            with urllib.request.urlopen(urllib.request.Request(download_url)) as response:
                status = response.status
                data = response.read()
        except urllib.error.HTTPError as exc:
            raise UpdateError(
                f"failed to download a release file from {download_url}: Not successful status {exc.code}"
            ) from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise UpdateError(f"failed to download a release file from {download_url}: {exc}") from exc
        if status != 200:
            raise UpdateError(
                f"failed to download a release file from {download_url}: Not successful status {status}"
            )

        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise UpdateError(f"failed to uncompress zip file: {exc}") from exc

        with archive:
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as exc:
                raise UpdateError(f"failed to create template base folder: {exc}") from exc
            try:
                results = self.compare_and_write_templates(archive)
            except (OSError, zipfile.BadZipFile) as exc:
                raise UpdateError(f"failed to write templates: {exc}") from exc

        sys.stderr.write(changelog(results, version))
        try:
            write_checksum(_join(directory, CHECKSUM_FILE), results.checksums)
        except OSError as exc:
            raise UpdateError(f"could not write checksum: {exc}") from exc
        try:
            Path(_join(directory, ADDITIONS_FILE)).write_text(
                "".join(addition + "\n" for addition in results.additions), encoding="utf-8"
            )
        except OSError as exc:
            raise UpdateError(f"could not write new additions file: {exc}") from exc
        return results

    def compare_and_write_templates(self, archive: zipfile.ZipFile) -> UpdateResults:
        """Write the archive's templates, comparing them with the last checksums."""
        directory = self._templates_directory()
        root = os.path.realpath(directory)
        results = UpdateResults()
        try:
            previous = read_previous_checksum(_join(directory, CHECKSUM_FILE))
        except OSError:
            previous = {}

        for info in archive.infolist():
            folder, _, name = info.filename.rpartition("/")
            if not name:
                continue
            final_path = "/".join(folder.split("/")[1:])
            hidden = not name.lower() == NUCLEI_IGNORE_FILE and name.startswith(".")
            if hidden or final_path.startswith(".") or name.lower() == "readme.md":
                continue
            results.total_count += 1

            template_directory = _join(directory, final_path)
            template_path = _join(template_directory, name)
            real = os.path.realpath(template_path)
            if os.path.commonpath([root, real]) != root:
                raise UpdateError(f"archive entry escapes templates directory: {info.filename}")
            os.makedirs(template_directory, exist_ok=True)

            is_addition = not os.path.exists(template_path)
            hasher = hashlib.md5(usedforsecurity=False)
            with archive.open(info) as source, open(template_path, "wb") as target:
                for chunk in iter(lambda: source.read(_CHUNK), b""):
                    hasher.update(chunk)
                    target.write(chunk)
            checksum = hasher.hexdigest()

            relative = _join(final_path, name)
            old = previous.get(template_path)
            if is_addition:
                results.additions.append(relative)
            elif old is not None and old[0] != checksum:
                results.modifications.append(relative)
            results.checksums[template_path] = checksum

        for path, (expected, actual) in previous.items():
            if path not in results.checksums and expected == actual:
                try:
                    os.remove(path)
                except FileNotFoundError:
                    pass
                results.deletions.append(path.removeprefix(directory).removeprefix("/"))
        return results

    def latest_release(self, releases: Iterable[dict[str, Any]]) -> tuple[_SemVer, dict[str, Any]]:
        """Return the highest version among the releases and the release itself."""
        latest_version: Optional[_SemVer] = None
        latest: Optional[dict[str, Any]] = None
        for release in releases:
            version = parse_version(str(release.get("tag_name") or ""))
            if latest is None or version >= latest_version:
                latest_version, latest = version, release
        if latest is None or latest_version is None:
            raise UpdateError("no version found for the templates")
        return latest_version, latest

    def _fetch_releases(self) -> list[dict[str, Any]]:
        request = urllib.request.Request(RELEASES_URL, headers={"Accept": "application/vnd.github.v3+json"})
        try:
            with urllib.request.urlopen(request, timeout=30) as response:
                data = json.load(response)
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise UpdateError(f"could not list template releases: {exc}") from exc
        if not isinstance(data, list):
            raise UpdateError("unexpected response listing template releases")
        return data

    def _refresh_ignore_file(self, url: str) -> None:
        log.debug("Downloading config file from %s", url)
        try:
            with urllib.request.urlopen(urllib.request.Request(url), timeout=10) as response:
                data = response.read()
        except (urllib.error.URLError, OSError, ValueError) as exc:
            log.warning("Could not get ignore-file from %s: %s", url, exc)
            return
        if data:
            try:
                Path(self.config_dir, NUCLEI_IGNORE_FILE).write_bytes(data)
            except OSError as exc:
                log.warning("Could not write ignore-file: %s", exc)
        if self.config is not None:
            self.config.last_checked_ignore = datetime.now().astimezone()

    def _save(self) -> None:
        try:
            write_configuration(self.config, self.config_dir)
        except OSError as exc:
            raise UpdateError(f"could not write template configuration: {exc}") from exc

    def update_templates(self, update: bool = False, templates_directory: str = "") -> None:
        """Install the templates if missing and update them when a newer release exists."""
        default_directory = _join(str(Path.home()), "nuclei-templates")
        os.makedirs(self.config_dir, exist_ok=True)

        if self.config is None and os.path.exists(os.path.join(self.config_dir, ".templates-config.json")):
            try:
                self.config = read_configuration(self.config_dir)
            except (OSError, ValueError) as exc:
                raise UpdateError(f"could not read template configuration: {exc}") from exc

        if self.config is None:
            self.config = TemplatesConfig(
                templates_directory=default_directory,
                ignore_url=DEFAULT_IGNORE_URL,
                nuclei_version=VERSION,
            )
            self._save()

        if _since(self.config.last_checked_ignore) > timedelta(hours=1) or update:
            self._refresh_ignore_file(self.config.ignore_url or DEFAULT_IGNORE_URL)

        if not self.config.current_version or (
            templates_directory and self.config.templates_directory != templates_directory
        ):
            if not update:
                log.warning("nuclei-templates are not installed (or indexed), use update-templates flag.")
                return
            self.config = TemplatesConfig(templates_directory=default_directory)
            if templates_directory and templates_directory != default_directory:
                self.config.templates_directory = templates_directory
            version, release = self.latest_release(self._fetch_releases())
            log.debug("Downloading nuclei-templates (v%s) to %s", version, self.config.templates_directory)
            self.download_release_and_unzip(str(version), str(release.get("zipball_url") or ""))
            self.config.current_version = str(version)
            self._save()
            log.info("Successfully downloaded nuclei-templates (v%s). Enjoy!", version)
            return

        if _since(self.config.last_checked) < timedelta(hours=24) and not update:
            return

        old_version = parse_version(self.config.current_version)
        version, release = self.latest_release(self._fetch_releases())

        if version == old_version:
            log.info("Your nuclei-templates are up to date: v%s", old_version)
            self._save()
            return

        if version > old_version:
            if not update:
                log.warning(
                    "Your current nuclei-templates v%s are outdated. Latest is v%s", old_version, version
                )
                self._save()
                return
            if templates_directory:
                self.config.templates_directory = templates_directory
            self.config.current_version = str(version)
            log.debug("Downloading nuclei-templates (v%s) to %s", version, self.config.templates_directory)
            self.download_release_and_unzip(str(version), str(release.get("zipball_url") or ""))
            self._save()
            log.info("Successfully updated nuclei-templates (v%s). Enjoy!", version)