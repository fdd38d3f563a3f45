import pytest

from tmplscan.matchers import CompileError, ConditionType, Matcher, MatcherType


def compiled(**kwargs):
    matcher = Matcher(**kwargs)
    matcher.compile()
    return matcher


def test_and_condition():
    m = compiled(type="word", condition="and", words=["a", "b"])
    assert m.match_words("a b") is True
    assert m.match_words("b") is False


def test_or_condition():
    m = compiled(type="word", condition="or", words=["a", "b"])
    assert m.match_words("a b") is True
    assert m.match_words("b") is True
    assert m.match_words("c") is False


def test_hex_encoding():
    m = compiled(encoding="hex", type="word", part="body", words=["50494e47"])
    assert m.match_words("PING") is True
    assert m.words == ["PING"]


def test_hex_encoding_keeps_invalid_words():
    m = compiled(encoding="hex", type="word", words=["zz", "abc"])
    assert m.words == ["zz", "abc"]


def test_default_condition_is_or_and_part_is_body():
    m = compiled(type="word", words=["x"])
    assert m.condition_type is ConditionType.OR
    assert m.part == "body"
    assert m.matcher_type is MatcherType.WORDS


def test_unknown_type_raises():
    with pytest.raises(CompileError, match="unknown matcher type"):
        Matcher(type="nope").compile()


def test_unknown_condition_raises():
    with pytest.raises(CompileError, match="unknown condition"):
        Matcher(type="word", condition="xor").compile()


def test_bad_regex_raises():
    with pytest.raises(CompileError, match="could not compile regex"):
        Matcher(type="regex", regex=["("]).compile()


def test_bad_dsl_raises():
    with pytest.raises(CompileError, match="could not compile dsl"):
        Matcher(type="dsl", dsl=["len(("]).compile()


def test_match_status_code_and_size():
    m = compiled(type="status", status=[200, 302], size=[10])
    assert m.match_status_code(302) is True
    assert m.match_status_code(404) is False
    assert m.match_size(10) is True
    assert m.match_size(11) is False


def test_match_regex_conditions():
    or_matcher = compiled(type="regex", regex=[r"^abc", r"\d+$"])
    assert or_matcher.match_regex("abcdef") is True
    and_matcher = compiled(type="regex", condition="and", regex=[r"^abc", r"\d+$"])
    assert and_matcher.match_regex("abcdef") is False
    assert and_matcher.match_regex("abc123") is True


def test_match_binary():
    m = compiled(type="binary", binary=["50494e47"])
    assert m.match_binary("xxPINGxx") is True
    assert m.match_binary("PONG") is False


def test_match_dsl():
    m = compiled(type="dsl", dsl=["len(body) == 4"])
    assert m.match_dsl({"body": "PING"}) is True
    assert m.match_dsl({"body": "PINGS"}) is False


def test_match_dsl_skips_failing_expressions():
    m = compiled(type="dsl", condition="and", dsl=["missing == 1", "true"])
    assert m.match_dsl({}) is True


def test_negative_result():
    assert Matcher(negative=True).result(True) is False
    assert Matcher().result(True) is True