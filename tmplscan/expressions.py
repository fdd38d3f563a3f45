"""Evaluation of ``{{...}}`` helper expressions embedded in template data."""

from __future__ import annotations

import re
from typing import Any, Mapping

from .dsl import helper_functions
from .evaluator import Expression, ExpressionError
from .generators import trim_delimiters
from .replacer import replace

_TEMPLATE_EXPRESSION = re.compile(r"\{\{[^}]+\}\}[\"'\)\}]*", re.MULTILINE)
_FUNCTIONS = helper_functions()


def evaluate(data: str, base: Mapping[str, Any]) -> str:
    """Substitute ``base`` values into ``data`` and evaluate embedded expressions.

    Expressions that fail to parse or evaluate are left untouched.
    """
    data = replace(data, base)

    dynamic_values: dict[str, Any] = {}
    for match in _TEMPLATE_EXPRESSION.findall(data):
        expression = trim_delimiters(match)
        try:
            dynamic_values[expression] = Expression(expression, _FUNCTIONS).evaluate(base)
        except ExpressionError:
            continue
    return replace(data, dynamic_values)