import json
from datetime import datetime, timedelta, timezone

import pytest

from tmplscan.config import (
    CONFIG_FILENAME,
    DEFAULT_IGNORE_URL,
    NUCLEI_IGNORE_FILE,
    VERSION,
    TemplatesConfig,
    banner,
    ignore_file_path,
    read_configuration,
    read_ignore_file,
    write_configuration,
)


def test_write_then_read_round_trip(tmp_path):
    config = TemplatesConfig(
        templates_directory="/opt/templates",
        current_version="1.2.3",
        ignore_paths=["workflows/", "cves/2020/cve-2020-5432.yaml"],
    )
    write_configuration(config, str(tmp_path))
    loaded = read_configuration(str(tmp_path))
    assert loaded == config


def test_write_fills_defaults(tmp_path):
    config = TemplatesConfig(templates_directory="/opt/templates")
    before = datetime.now().astimezone()
    write_configuration(config, str(tmp_path))
    assert config.ignore_url == DEFAULT_IGNORE_URL
    assert config.nuclei_version == VERSION
    assert config.last_checked is not None
    assert config.last_checked >= before
    assert config.last_checked_ignore == config.last_checked


def test_write_keeps_custom_ignore_url(tmp_path):
    config = TemplatesConfig(ignore_url="http://localhost/ignore")
    write_configuration(config, str(tmp_path))
    assert read_configuration(str(tmp_path)).ignore_url == "http://localhost/ignore"


def test_write_omits_empty_fields(tmp_path):
    write_configuration(TemplatesConfig(), str(tmp_path))
    data = json.loads((tmp_path / CONFIG_FILENAME).read_text())
    assert "current-version" not in data
    assert "ignore-paths" not in data
    assert data["nuclei-version"] == VERSION


def test_read_missing_configuration_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_configuration(str(tmp_path / "nothing"))


def test_read_invalid_configuration_raises(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("{not json")
    with pytest.raises(ValueError):
        read_configuration(str(tmp_path))


def test_read_nanosecond_and_zero_timestamps(tmp_path):
    document = {
        "templates-directory": "/opt/templates",
        "last-checked": "2021-02-25T17:17:28.123456789Z",
        "last-checked-ignore": "0001-01-01T00:00:00Z",
    }
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps(document))
    loaded = read_configuration(str(tmp_path))
    assert loaded.last_checked == datetime(2021, 2, 25, 17, 17, 28, 123456, tzinfo=timezone.utc)
    assert loaded.last_checked_ignore is None
    assert loaded.templates_directory == "/opt/templates"


def test_timestamp_with_offset_is_preserved(tmp_path):
    document = {"last-checked": "2021-02-25T17:17:28+05:30"}
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps(document))
    loaded = read_configuration(str(tmp_path))
    assert loaded.last_checked.utcoffset() == timedelta(hours=5, minutes=30)


def test_read_ignore_file_skips_comments_and_blanks(tmp_path):
    path = tmp_path / NUCLEI_IGNORE_FILE
    path.write_text("# comment\n\nworkflows/\ncves/2020/cve-2020-5432.yaml\n")
    assert read_ignore_file(str(path)) == ["workflows/", "cves/2020/cve-2020-5432.yaml"]


def test_read_ignore_file_missing_is_empty(tmp_path):
    assert read_ignore_file(str(tmp_path / "absent")) == []


def test_ignore_file_path_prefers_working_directory(tmp_path):
    config_dir = tmp_path / "config"
    cwd = tmp_path / "work"
    cwd.mkdir()
    (cwd / NUCLEI_IGNORE_FILE).write_text("misc/\n")
    assert ignore_file_path(str(config_dir), str(cwd)) == str(cwd / NUCLEI_IGNORE_FILE)


def test_ignore_file_path_falls_back_to_config_dir(tmp_path):
    config_dir = tmp_path / "config"
    cwd = tmp_path / "work"
    (cwd / NUCLEI_IGNORE_FILE).mkdir(parents=True)
    assert ignore_file_path(str(config_dir), str(cwd)) == str(config_dir / NUCLEI_IGNORE_FILE)
    assert config_dir.is_dir()


def test_banner_carries_version():
    text = banner()
    assert "v" + VERSION in text
    assert "Use with caution" in text