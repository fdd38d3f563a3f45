import pytest

from tmplscan.extractors import Extractor, ExtractorType
from tmplscan.matchers import CompileError


def compiled(**kwargs):
    extractor = Extractor(**kwargs)
    extractor.compile()
    return extractor


def test_unknown_type_raises():
    with pytest.raises(CompileError, match="unknown extractor type"):
        Extractor(type="json").compile()


def test_bad_regex_raises():
    with pytest.raises(CompileError, match="could not compile regex"):
        Extractor(type="regex", regex=["[a-"]).compile()


def test_compile_defaults_and_lowercases_kval():
    e = compiled(type="kval", kval=["Content-Type", "SERVER"])
    assert e.kval == ["content-type", "server"]
    assert e.part == "body"
    assert e.extractor_type is ExtractorType.KVAL


def test_compile_keeps_explicit_part():
    e = compiled(type="regex", part="header")
    assert e.part == "header"


def test_extract_regex_whole_match():
    e = compiled(type="regex", regex=[r"id=\d+"])
    assert e.extract_regex("id=42 and id=43") == ["id=42", "id=43"]


def test_extract_regex_group_and_dedup():
    e = compiled(type="regex", regex=[r"id=(\d+)"], group=1)
    assert e.extract_regex("id=42 id=42 id=43") == ["42", "43"]


def test_extract_regex_group_out_of_range_is_empty():
    e = compiled(type="regex", regex=[r"id=(\d+)"], group=2)
    assert e.extract_regex("id=42") == []


def test_extract_regex_multiple_patterns_unique():
    e = compiled(type="regex", regex=[r"a+", r"a+"])
    assert e.extract_regex("aa b aa") == ["aa"]


def test_extract_kval():
    e = compiled(type="kval", kval=["Server", "missing"])
    assert e.extract_kval({"server": "nginx", "other": "x"}) == ["nginx"]


def test_extract_kval_converts_values_to_strings():
    e = compiled(type="kval", kval=["flag"])
    assert e.extract_kval({"flag": True}) == ["true"]