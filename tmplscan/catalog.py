"""Locating template files on disk and applying ignore rules."""

from __future__ import annotations

import glob
import logging
import os
import posixpath
import stat
from pathlib import Path
from typing import Iterable, Optional, Sequence

log = logging.getLogger(__name__)

NUCLEI_IGNORE_FILE = ".nuclei-ignore"
TEMPLATE_SUFFIX = ".yaml"


class CatalogError(Exception):
    """Raised when a template path cannot be resolved or holds no templates."""


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return posixpath.normpath("/".join(present))


def _exists(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def _matches_rule(item: str, rule: str) -> bool:
    if not rule.endswith(TEMPLATE_SUFFIX):
        return item.removesuffix("/").endswith(rule.removesuffix("/"))
    return item.endswith(rule)


def _read_ignore_file(path: str) -> list[str]:
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return [line for line in text.splitlines() if line and not line.startswith("#")]


class Catalog:
    """Resolves template definitions to lists of template files."""

    def __init__(
        self,
        templates_directory: str = "",
        ignore_files: Optional[Sequence[str]] = None,
    ) -> None:
        self.templates_directory = templates_directory
        if ignore_files is None:
            ignore_files = _read_ignore_file(_join(templates_directory, NUCLEI_IGNORE_FILE))
        self.ignore_files = list(ignore_files)

    def resolve_path(self, template_name: str, second: str = "") -> str:
        """Resolve a template name to an existing path.

        Absolute paths are returned as given; otherwise the directory of
        ``second``, the current directory and the templates directory are
        tried in that order.
        """
        if template_name.startswith("/") or ":\\" in template_name:
            return template_name

        if second:
            candidate = _join(posixpath.dirname(second) or ".", template_name)
            if _exists(candidate):
                return candidate

        candidate = _join(os.getcwd(), template_name)
        if _exists(candidate):
            return candidate

        if self.templates_directory:
            candidate = _join(self.templates_directory, template_name)
            if _exists(candidate):
                return candidate
        raise CatalogError(f"no such path found: {template_name}")

    def get_templates_path(self, definitions: Iterable[str]) -> list[str]:
        """Resolve every definition, returning unique paths in first-seen order."""
        found: dict[str, None] = {}
        for definition in definitions:
            try:
                paths = self.get_template_path(definition)
            except CatalogError as exc:
                log.error("Could not find template '%s': %s", definition, exc)
                continue
            for path in paths:
                found.setdefault(path, None)
        if found:
            log.debug("Identified %d templates", len(found))
        return list(found)

    def get_template_path(self, target: str) -> list[str]:
        """Expand a file, directory or glob into a list of template paths."""
        try:
            abs_path = self._to_absolute(target)
        except CatalogError as exc:
            raise CatalogError(f"could not find template file: {exc}") from exc

        if "*" in abs_path:
            matches = list(dict.fromkeys(sorted(glob.glob(abs_path))))
            if not matches:
                raise CatalogError("no templates found for path")
            return matches

        try:
            info = os.stat(abs_path)
        except OSError as exc:
            raise CatalogError(f"could not find file: {exc}") from exc
        if stat.S_ISREG(info.st_mode):
            return [abs_path]

        matches = self._directory_matches(abs_path)
        if not matches:
            raise CatalogError("no templates found in path")
        return matches

    def _to_absolute(self, target: str) -> str:
        if "*" in target:
            base = posixpath.basename(target)
            directory = self.resolve_path(posixpath.dirname(target) or ".", "")
            return _join(directory, base)
        return self.resolve_path(target, "")

    def _directory_matches(self, abs_path: str) -> list[str]:
        found: dict[str, None] = {}
        for root, dirs, files in os.walk(abs_path):
            dirs.sort()
            for name in sorted(files):
                path = os.path.join(root, name)
                if not path.endswith(TEMPLATE_SUFFIX) or os.path.isdir(path):
                    continue
                if self.is_ignored(path):
                    continue
                found.setdefault(path, None)
        return list(found)

    def is_ignored(self, item: str) -> bool:
        """Return True if ``item`` falls under the ignore rules."""
        if not self.templates_directory:
            return False
        if any(_matches_rule(item, rule) for rule in self.ignore_files):
            log.error("Excluding %s due to nuclei-ignore filter", item)
            return True
        return False

    def filter_excludes(self, results: Iterable[str], excluded: Sequence[str]) -> list[str]:
        """Return the results that match none of the exclude rules."""
        kept = []
        for result in results:
            if any(_matches_rule(result, rule) for rule in excluded):
                log.error("Excluding %s due to excludes filter", result)
            else:
                kept.append(result)
        return kept