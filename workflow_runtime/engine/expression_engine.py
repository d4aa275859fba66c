"""
Expression evaluator for decision nodes and conditional routing.

Uses simpleeval for safe expression evaluation (no eval() or exec()).
Supports comparisons and boolean combinators over store paths such as
`$.data.value > 10 && $.data.status === "ready"`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from simpleeval import DEFAULT_OPERATORS, EvalWithCompoundTypes, InvalidExpression

from ..core.exceptions import EvaluationError
from .paths import MISSING, get_path

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(
    r"""(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')"""
    r"""|(?P<path>\$(?:\.\w+|\[\d+\])+)"""
    r"""|(?P<op>===|!==|&&|\|\||!(?!=))"""
    r"""|(?P<literal>\b(?:true|false|null|undefined)\b)"""
)

_OPERATOR_REWRITES = {
    "===": "==",
    "!==": "!=",
    "&&": " and ",
    "||": " or ",
    "!": " not ",
}

_LITERAL_REWRITES = {
    "true": "True",
    "false": "False",
    "null": "None",
    "undefined": "None",
}


class Undefined:
    """
    Value bound to a path that does not exist in the store.

    Only exists() and empty() accept it; any comparison, arithmetic or
    truth test raises EvaluationError.
    """

    __slots__ = ("path",)

    def __init__(self, path: str) -> None:
        self.path = path

    def __repr__(self) -> str:
        return f"Undefined({self.path})"

    def _fail(self, *args: Any) -> Any:
        raise EvaluationError(f"Undefined variable: {self.path}", expression=self.path)

    __bool__ = _fail
    __eq__ = _fail
    __ne__ = _fail
    __lt__ = _fail
    __le__ = _fail
    __gt__ = _fail
    __ge__ = _fail
    __add__ = __radd__ = _fail
    __sub__ = __rsub__ = _fail
    __mul__ = __rmul__ = _fail
    __truediv__ = __rtruediv__ = _fail
    __mod__ = __rmod__ = _fail
    __len__ = _fail
    __contains__ = _fail
    __iter__ = _fail
    __hash__ = None  # type: ignore[assignment]


def _is_defined(value: Any) -> bool:
    return not isinstance(value, Undefined) and value is not None


def _is_empty(value: Any) -> bool:
    if isinstance(value, Undefined) or value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


class ExpressionEngine:
    """
    Safe boolean expression evaluator.

    Uses simpleeval (with list and tuple literals) and a whitelist of
    helper functions.
    """

    def __init__(self) -> None:
        self._setup_evaluator()

    def _setup_evaluator(self) -> None:
        """Set up the safe evaluator with allowed functions."""
        self.evaluator = EvalWithCompoundTypes()
        self.evaluator.operators = DEFAULT_OPERATORS.copy()

        self.evaluator.functions = {
            # Presence checks
            "exists": _is_defined,
            "empty": _is_empty,
            # Type conversion
            "str": str,
            "int": int,
            "float": float,
            # String and collection helpers
            "length": lambda x: len(x),
            "lower": lambda s: str(s).lower(),
            "upper": lambda s: str(s).upper(),
            "contains": lambda haystack, needle: needle in haystack,
            "startswith": lambda s, prefix: str(s).startswith(prefix),
            "endswith": lambda s, suffix: str(s).endswith(suffix),
            # Math functions
            "abs": abs,
            "min": min,
            "max": max,
            "round": round,
        }

    def evaluate(self, expression: str, data: Mapping[str, Any]) -> bool:
        """
        Evaluate a boolean expression against the variable store.

        Raises:
            EvaluationError: On syntax errors, undefined paths, type
                mismatches, or a result that is not a boolean
        """
        result = self.evaluate_value(expression, data)
        if not isinstance(result, bool):
            raise EvaluationError(
                f"Expression did not evaluate to a boolean (got {type(result).__name__})",
                expression=expression,
            )
        return result

    def evaluate_value(self, expression: str, data: Mapping[str, Any]) -> Any:
        """Evaluate an expression and return its raw value."""
        if not isinstance(expression, str) or not expression.strip():
            raise EvaluationError("Expression must be a non-empty string", expression=str(expression))

        transformed, bindings = self._transform_expression(expression, data)
        names: dict[str, Any] = dict(data)
        names.update(bindings)

        try:
            self.evaluator.names = names
            return self.evaluator.eval(transformed)
        except EvaluationError:
            raise
        except (
            InvalidExpression,
            SyntaxError,
            TypeError,
            ValueError,
            ZeroDivisionError,
            KeyError,
            IndexError,
            AttributeError,
        ) as e:
            logger.warning("Expression evaluation failed: %s (expression: %s)", e, expression)
            raise EvaluationError(f"Cannot evaluate expression: {e}", expression=expression) from e

    def _transform_expression(
        self, expression: str, data: Mapping[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """
        Rewrite JS-style syntax to Python and bind `$.` paths to names.

        String literals are left untouched.
        """
        bindings: dict[str, Any] = {}

        def replacer(match: re.Match[str]) -> str:
            kind = match.lastgroup
            token = match.group(0)
            if kind == "string":
                return token
            if kind == "path":
                name = f"path__{len(bindings)}"
                value = get_path(data, token)
                bindings[name] = Undefined(token) if value is MISSING else value
                return name
            if kind == "op":
                return _OPERATOR_REWRITES[token]
            return _LITERAL_REWRITES[token]

        transformed = _TOKEN_PATTERN.sub(replacer, expression).strip()
        return transformed, bindings


# Singleton instance
expression_engine = ExpressionEngine()
