"""Edge resolution: pick the next node from a node's result."""

from __future__ import annotations

import logging
from typing import Any

from ..core.exceptions import EvaluationError
from .expression_engine import ExpressionEngine, expression_engine
from .paths import MISSING, get_path
from .types import BRANCHING_NODE_TYPES, EdgeCondition, EdgeDefinition, NodeDefinition, NodeResult, NodeType

logger = logging.getLogger(__name__)


def _loose_equals(actual: Any, expected: Any) -> bool:
    """Equality that treats "true" and True alike, as JSON definitions mix them."""
    if actual is MISSING:
        return False
    if actual == expected:
        return True
    if isinstance(actual, bool) or isinstance(expected, bool):
        return str(actual).lower() == str(expected).lower()
    return False


class EdgeResolver:
    """
    Selects the outgoing edge to follow after a node finishes.

    Conditional edges are tested first; exactly one may match. Decision and
    human nodes route on their branch alone, so for them no match is fatal.
    Other nodes fall back to their single unconditional edge, if any.
    """

    def __init__(self, evaluator: ExpressionEngine | None = None) -> None:
        self._evaluator = evaluator or expression_engine

    def next_node(
        self,
        node: NodeDefinition,
        result: NodeResult,
        edges: list[EdgeDefinition],
        data: dict[str, Any],
    ) -> str | None:
        """
        Return the id of the next node, or None for an end node.

        Raises:
            EvaluationError: If no edge matches, or more than one does
        """
        if node.type == NodeType.END.value:
            return None

        outgoing = [e for e in edges if e.source == node.id]
        conditional = [e for e in outgoing if e.condition is not None]
        unconditional = [e for e in outgoing if e.condition is None]

        context = self.build_context(result, data)
        matches = [e for e in conditional if self.condition_matches(e.condition, context)]

        if len(matches) > 1:
            raise EvaluationError(
                f"Ambiguous routing from '{node.id}': edges "
                f"{', '.join(str(e.id or e.target) for e in matches)} all match "
                f"branch '{result.branch}'"
            )
        if matches:
            return matches[0].target

        # Decision and human nodes never take a default route
        if unconditional and node.type not in BRANCHING_NODE_TYPES:
            if len(unconditional) > 1:
                raise EvaluationError(
                    f"Node '{node.id}' has {len(unconditional)} unconditional edges; fan-out is not supported"
                )
            if conditional:
                logger.debug("No conditional edge of %s matched; taking default edge", node.id)
            return unconditional[0].target

        raise EvaluationError(
            f"No outgoing edge of '{node.id}' matches branch '{result.branch}'"
        )

    @staticmethod
    def build_context(result: NodeResult, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "result": {**result.output, "branch": result.branch},
            "branch": result.branch,
            "data": data,
        }

    def condition_matches(self, condition: EdgeCondition, context: dict[str, Any]) -> bool:
        """Test a single edge condition against the routing context."""
        cond_type = condition.type or "equals"

        if cond_type == "expression":
            return self._evaluator.evaluate(str(condition.value), context["data"])

        actual = self._resolve_field(condition.field, context)

        if cond_type == "equals":
            return _loose_equals(actual, condition.value)
        if cond_type == "notEquals":
            return not _loose_equals(actual, condition.value)
        if cond_type == "exists":
            present = actual is not MISSING and actual is not None
            return present if condition.value is not False else not present
        if cond_type == "contains":
            if isinstance(actual, str):
                return isinstance(condition.value, str) and condition.value in actual
            if isinstance(actual, list):
                return condition.value in actual
            return False

        raise EvaluationError(f"Unknown edge condition type: {cond_type}")

    @staticmethod
    def _resolve_field(field: str, context: dict[str, Any]) -> Any:
        if not isinstance(field, str) or not field:
            raise EvaluationError(f"Edge condition field must be a non-empty string, got {field!r}")
        if field.startswith("$."):
            return get_path(context["data"], field)
        return get_path(context, field)


# Singleton instance
edge_resolver = EdgeResolver()
