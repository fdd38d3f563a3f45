import os

import pytest

from tmplscan.catalog import Catalog, CatalogError


@pytest.mark.parametrize(
    "path, ignore",
    [
        ("workflows/", True),
        ("misc", False),
        ("cves/", False),
        ("cves/2020/cve-2020-5432.yaml", True),
        ("/Users/test/nuclei-templates/workflows/", True),
        ("/Users/test/nuclei-templates/misc", False),
        ("/Users/test/nuclei-templates/cves/", False),
        ("/Users/test/nuclei-templates/cves/2020/cve-2020-5432.yaml", True),
    ],
)
def test_ignore_files_ignore(path, ignore):
    catalog = Catalog("test", ignore_files=["workflows/", "cves/2020/cve-2020-5432.yaml"])
    assert catalog.is_ignored(path) is ignore


def test_exclude_files_ignore():
    catalog = Catalog("", ignore_files=[])
    excludes = ["workflows/", "cves/2020/cve-2020-5432.yaml"]
    paths = [
        "/Users/test/nuclei-templates/workflows/",
        "/Users/test/nuclei-templates/cves/2020/cve-2020-5432.yaml",
        "/Users/test/nuclei-templates/workflows/test-workflow.yaml",
        "/Users/test/nuclei-templates/cves/",
    ]
    assert catalog.filter_excludes(paths, excludes) == [
        "/Users/test/nuclei-templates/workflows/test-workflow.yaml",
        "/Users/test/nuclei-templates/cves/",
    ]


def test_no_templates_directory_never_ignores():
    catalog = Catalog("", ignore_files=["workflows/"])
    assert catalog.is_ignored("workflows/") is False


def test_ignore_file_read_from_templates_directory(tmp_path):
    (tmp_path / ".nuclei-ignore").write_text("# comment\n\nworkflows/\nmisc/a.yaml\n")
    catalog = Catalog(str(tmp_path))
    assert catalog.ignore_files == ["workflows/", "misc/a.yaml"]


def test_resolve_absolute_path_unchanged():
    catalog = Catalog("", ignore_files=[])
    assert catalog.resolve_path("/does/not/exist.yaml") == "/does/not/exist.yaml"


def test_resolve_missing_raises(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    catalog = Catalog("", ignore_files=[])
    with pytest.raises(CatalogError):
        catalog.resolve_path("missing.yaml")


def test_resolve_from_current_directory(tmp_path, monkeypatch):
    (tmp_path / "a.yaml").write_text("id: a")
    monkeypatch.chdir(tmp_path)
    catalog = Catalog("", ignore_files=[])
    assert catalog.resolve_path("a.yaml") == os.path.join(os.getcwd(), "a.yaml")


def test_resolve_from_templates_directory(tmp_path, monkeypatch):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "x.yaml").write_text("id: x")
    other = tmp_path / "other"
    other.mkdir()
    monkeypatch.chdir(other)
    catalog = Catalog(str(templates), ignore_files=[])
    assert catalog.resolve_path("x.yaml") == str(templates / "x.yaml")


def test_resolve_relative_to_second(tmp_path, monkeypatch):
    (tmp_path / "payload.txt").write_text("a")
    monkeypatch.chdir("/")
    catalog = Catalog("", ignore_files=[])
    assert catalog.resolve_path("payload.txt", str(tmp_path / "t.yaml")) == str(tmp_path / "payload.txt")


def test_get_template_path_file(tmp_path):
    target = tmp_path / "one.yaml"
    target.write_text("id: one")
    catalog = Catalog("", ignore_files=[])
    assert catalog.get_template_path(str(target)) == [str(target)]


def test_get_template_path_glob(tmp_path):
    for name in ("b.yaml", "a.yaml", "c.txt"):
        (tmp_path / name).write_text("x")
    catalog = Catalog("", ignore_files=[])
    result = catalog.get_template_path(str(tmp_path) + "/*.yaml")
    assert result == [str(tmp_path / "a.yaml"), str(tmp_path / "b.yaml")]


def test_get_template_path_glob_without_matches(tmp_path):
    catalog = Catalog("", ignore_files=[])
    with pytest.raises(CatalogError):
        catalog.get_template_path(str(tmp_path) + "/*.yaml")


def test_get_template_path_empty_directory(tmp_path):
    catalog = Catalog("", ignore_files=[])
    with pytest.raises(CatalogError):
        catalog.get_template_path(str(tmp_path))


def test_get_templates_path_deduplicates_and_skips_missing(tmp_path):
    target = tmp_path / "one.yaml"
    target.write_text("id: one")
    (tmp_path / "two.yaml").write_text("id: two")
    catalog = Catalog("", ignore_files=[])
    result = catalog.get_templates_path(
        [str(target), str(tmp_path / "nope.yaml"), str(target), str(tmp_path)]
    )
    assert result == [str(target), os.path.join(str(tmp_path), "two.yaml")]