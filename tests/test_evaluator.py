import pytest

from tmplscan.evaluator import Expression, ExpressionError


def test_precedence_of_multiplication_over_addition():
    assert Expression("1 + 2 * 3").evaluate() == 7.0
    assert Expression("1 + 2 * 3").evaluate() == Expression("1 + (2 * 3)").evaluate()
    assert Expression("1 + 2 * 3").evaluate() != Expression("(1 + 2) * 3").evaluate()


def test_hex_literal():
    assert Expression("0x10").evaluate() == 16.0


def test_integer_parameters_become_floats():
    result = Expression("n / d").evaluate({"n": 3, "d": 2})
    assert isinstance(result, float)
    assert result == 3 / 2


def test_string_concatenation_with_number():
    assert Expression("'v' + 1").evaluate() == "v1"
    assert Expression("x + y").evaluate({"x": "foo", "y": "bar"}) == "foo" + "bar"


def test_missing_parameter_raises():
    with pytest.raises(ExpressionError):
        Expression("someTestData").evaluate({})


def test_unknown_function_raises_on_parse():
    with pytest.raises(ExpressionError):
        Expression("nothing_here(1)")


def test_unterminated_string_raises():
    with pytest.raises(ExpressionError):
        Expression("'open")


def test_trailing_tokens_raise():
    with pytest.raises(ExpressionError):
        Expression("1 2")


def test_escaped_quote_in_string():
    assert Expression(r"'it\'s'").evaluate() == "it's"
    assert Expression(r'"a\"b"').evaluate() == 'a"b'


def test_bracketed_variable_name():
    expression = Expression("[content-length] > 10")
    assert expression.evaluate({"content-length": 20}) is True
    assert expression.evaluate({"content-length": 5}) is False


def test_comparisons_and_equality():
    assert Expression("status_code == 200").evaluate({"status_code": 200}) is True
    assert Expression("status_code != 200").evaluate({"status_code": 404}) is True
    assert Expression("'abc' < 'abd'").evaluate() is True
    assert Expression("true == 1").evaluate() is False


def test_ordered_comparison_of_mixed_types_raises():
    with pytest.raises(ExpressionError):
        Expression("'a' > 1").evaluate()


def test_logical_short_circuit():
    assert Expression("false && missing").evaluate({}) is False
    assert Expression("true || missing").evaluate({}) is True


def test_logical_needs_booleans():
    with pytest.raises(ExpressionError):
        Expression("1 && true").evaluate()


def test_regex_operators():
    params = {"body": "Server: nginx/1.2"}
    assert Expression("body =~ 'nginx/[0-9.]+'").evaluate(params) is True
    assert Expression("body !~ 'apache'").evaluate(params) is True


def test_ternary():
    expression = Expression("x > 1 ? 'big' : 'small'")
    assert expression.evaluate({"x": 5}) == "big"
    assert expression.evaluate({"x": 0}) == "small"


def test_in_operator():
    assert Expression("2 IN (1, 2, 3)").evaluate() is True
    assert Expression("'z' IN ('a', 'b')").evaluate() is False


def test_unary_operators():
    assert Expression("-x").evaluate({"x": 4}) == -4.0
    assert Expression("!flag").evaluate({"flag": False}) is True


def test_bitwise_operators():
    assert Expression("a & b").evaluate({"a": 6, "b": 3}) == float(6 & 3)
    assert Expression("a | b").evaluate({"a": 6, "b": 3}) == float(6 | 3)


def test_division_by_zero_is_infinite():
    assert Expression("1 / 0").evaluate() == float("inf")
    assert str(Expression("0 / 0").evaluate()) == "nan"


def test_arithmetic_on_string_raises():
    with pytest.raises(ExpressionError):
        Expression("'a' - 1").evaluate()


def test_function_call_with_arguments():
    functions = {"join": lambda *args: "-".join(args)}
    assert Expression("join(a, 'b')", functions).evaluate({"a": "x"}) == "x-b"


def test_function_failure_is_wrapped():
    def boom(*args):
        raise RuntimeError("broken")

    with pytest.raises(ExpressionError):
        Expression("boom()", {"boom": boom}).evaluate()