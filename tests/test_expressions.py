import pytest

from tmplscan.expressions import evaluate


@pytest.mark.parametrize(
    "data, expected, extra",
    [
        ("{{hex_encode('PING')}}", "50494e47", {}),
        ("test", "test", {}),
        ("{{hex_encode(Item)}}", "50494e47", {"Item": "PING"}),
        ("{{hex_encode(Item)}}\r\n", "50494e47\r\n", {"Item": "PING"}),
        ("{{someTestData}}{{hex_encode('PING')}}", "{{someTestData}}50494e47", {}),
        (
            r'''_IWP_JSON_PREFIX_{{base64("{\"iwp_action\":\"add_site\",\"params\":{\"username\":\"\"}}")}}''',
            "_IWP_JSON_PREFIX_eyJpd3BfYWN0aW9uIjoiYWRkX3NpdGUiLCJwYXJhbXMiOnsidXNlcm5hbWUiOiIifX0=",
            {},
        ),
    ],
)
def test_evaluate(data, expected, extra):
    assert evaluate(data, extra) == expected


def test_plain_placeholder_is_replaced_from_base():
    assert evaluate("id={{name}}", {"name": "nuclei"}) == "id=nuclei"


def test_unknown_function_is_left_alone():
    data = "{{unknown_fn('x')}}"
    assert evaluate(data, {}) == data


def test_numeric_result_is_rendered_without_fraction():
    assert evaluate("{{len(body)}}", {"body": "abcd"}) == "4"


def test_boolean_result_is_rendered_lowercase():
    assert evaluate("{{contains(body, 'x')}}", {"body": "xyz"}) == "true"


def test_multiple_expressions_in_one_string():
    result = evaluate("{{toupper(a)}}-{{tolower(b)}}", {"a": "up", "b": "DOWN"})
    assert result == "UP-down"