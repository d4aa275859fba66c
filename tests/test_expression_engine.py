"""Tests for the expression evaluator."""

import pytest

from workflow_runtime.core.exceptions import EvaluationError
from workflow_runtime.engine.expression_engine import ExpressionEngine


@pytest.fixture
def engine():
    return ExpressionEngine()


class TestEvaluate:
    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("$.data.value > 10", True),
            ("$.data.value <= 10", False),
            ('$.data.status === "ready" && $.data.value > 1', True),
            ('$.data.status !== "ready" || $.data.value < 0', False),
            ("!($.data.value > 100)", True),
            ("$.data.tags[0] == 'a'", True),
            ("$.data.flag == true", True),
            ("exists($.data.status)", True),
            ("exists($.data.nothing)", False),
            ("empty($.data.list)", True),
            ("length($.data.tags) == 2", True),
            ('contains($.data.status, "read")', True),
        ],
    )
    def test_expressions(self, engine, expression, expected):
        data = {"value": 15, "status": "ready", "tags": ["a", "b"], "flag": True, "list": []}
        assert engine.evaluate(expression, data) is expected

    def test_bare_names_resolve_top_level_variables(self, engine):
        assert engine.evaluate("count >= 2", {"count": 3}) is True

    def test_operators_inside_strings_are_untouched(self, engine):
        assert engine.evaluate('$.data.s == "a && b"', {"s": "a && b"}) is True

    def test_undefined_variable_in_comparison(self, engine):
        with pytest.raises(EvaluationError, match="Undefined variable"):
            engine.evaluate("$.data.missing > 3", {})

    def test_non_boolean_result(self, engine):
        with pytest.raises(EvaluationError, match="boolean"):
            engine.evaluate("$.data.value + 1", {"value": 1})

    def test_syntax_error(self, engine):
        with pytest.raises(EvaluationError):
            engine.evaluate("$.data.value >", {"value": 1})

    def test_type_mismatch(self, engine):
        with pytest.raises(EvaluationError):
            engine.evaluate('$.data.value > "x"', {"value": 1})

    def test_function_calls_outside_whitelist_fail(self, engine):
        with pytest.raises(EvaluationError):
            engine.evaluate("open('x') == 1", {})

    def test_empty_expression(self, engine):
        with pytest.raises(EvaluationError):
            engine.evaluate("  ", {})
