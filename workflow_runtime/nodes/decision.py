"""Decision node - pick a branch from an expression or a switch table."""

from __future__ import annotations

import logging
import re
from typing import Any, TYPE_CHECKING

from ..core.exceptions import EvaluationError
from ..engine.expression_engine import expression_engine
from ..engine.paths import MISSING, get_path
from .base import BaseNode, NodeProperty, NodePropertyOption, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition

logger = logging.getLogger(__name__)

# Switch test keys, checked in this order on each condition
SWITCH_OPERATORS = (
    "equals",
    "notEquals",
    "greaterThan",
    "lessThan",
    "greaterThanOrEqual",
    "lessThanOrEqual",
    "contains",
    "matches",
    "in",
    "notIn",
)


class DecisionNode(BaseNode):
    """Routes execution by emitting a branch; never changes data."""

    node_description = NodeTypeDescription(
        name="decision",
        display_name="Decision",
        description="Choose a branch from a boolean expression or a switch table",
        icon="fa:code-branch",
        group=["flow"],
        branching=True,
        properties=[
            NodeProperty(
                display_name="Decision Type",
                name="type",
                type="options",
                default="expression",
                options=[
                    NodePropertyOption(name="Expression", value="expression"),
                    NodePropertyOption(name="Switch", value="switch"),
                ],
            ),
            NodeProperty(
                display_name="Expression",
                name="expression",
                type="string",
                default="",
                placeholder="$.data.value > 10",
                description="Boolean expression; emits branch 'true' or 'false'",
            ),
            NodeProperty(
                display_name="Variable",
                name="variable",
                type="string",
                default="",
                placeholder="$.data.documentType",
                description="Variable tested by the switch conditions",
            ),
            NodeProperty(
                display_name="Conditions",
                name="conditions",
                type="json",
                default=[],
                description='Ordered tests, e.g. [{"branch": "pdf", "equals": "application/pdf"}]',
            ),
            NodeProperty(
                display_name="Default Branch",
                name="defaultBranch",
                type="string",
                default="default",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "decision"

    @property
    def description(self) -> str:
        return "Choose a branch from a boolean expression or a switch table"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        config = node_definition.config
        mode = config.get("type", "expression")

        if mode == "expression":
            expression = config.get("expression")
            if not isinstance(expression, str) or not expression.strip():
                return ['missing required config "expression"']
            return []

        if mode != "switch":
            return [f"unknown decision type '{mode}'"]

        errors = []
        if not config.get("variable"):
            errors.append('switch decision needs a "variable"')
        conditions = config.get("conditions")
        if not isinstance(conditions, list) or not conditions:
            errors.append('switch decision needs a non-empty "conditions" list')
            return errors
        for index, condition in enumerate(conditions):
            if not isinstance(condition, dict) or not condition.get("branch"):
                errors.append(f"conditions[{index}] needs a branch")
                continue
            operator = self._operator(condition)
            if operator is None:
                errors.append(f"conditions[{index}] has no known test")
            elif operator == "matches":
                try:
                    re.compile(condition["matches"])
                except (re.error, TypeError) as e:
                    errors.append(f"conditions[{index}] has an invalid pattern: {e}")
            elif operator in ("in", "notIn") and not isinstance(condition[operator], list):
                errors.append(f"conditions[{index}].{operator} must be a list")
        return errors

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import NodeResult

        config = node_definition.config
        if config.get("type", "expression") == "switch":
            branch, value = self._evaluate_switch(config, context.store.data)
        else:
            expression = self.get_parameter(node_definition, "expression")
            value = expression_engine.evaluate(expression, context.store.data)
            branch = "true" if value else "false"

        logger.debug("Decision %s chose branch %s", node_definition.id, branch)
        return NodeResult(branch=branch, output={"branch": branch, "value": value})

    def _evaluate_switch(self, config: dict[str, Any], data: dict[str, Any]) -> tuple[str, Any]:
        variable = config["variable"]
        value = get_path(data, variable)
        if value is MISSING:
            value = None

        for condition in config.get("conditions", []):
            if self._matches(value, condition, variable):
                return condition["branch"], value

        return config.get("defaultBranch") or "default", value

    @staticmethod
    def _operator(condition: dict[str, Any]) -> str | None:
        return next((op for op in SWITCH_OPERATORS if op in condition), None)

    def _matches(self, value: Any, condition: dict[str, Any], variable: str) -> bool:
        operator = self._operator(condition)
        expected = condition.get(operator) if operator else None

        try:
            if operator == "equals":
                return value == expected
            if operator == "notEquals":
                return value != expected
            if operator == "greaterThan":
                return value is not None and value > expected
            if operator == "lessThan":
                return value is not None and value < expected
            if operator == "greaterThanOrEqual":
                return value is not None and value >= expected
            if operator == "lessThanOrEqual":
                return value is not None and value <= expected
            if operator == "contains":
                return isinstance(value, (str, list)) and expected in value
            if operator == "matches":
                return isinstance(value, str) and re.search(expected, value) is not None
            if operator == "in":
                return value in expected
            if operator == "notIn":
                return value not in expected
        except TypeError as e:
            raise EvaluationError(
                f"Cannot apply '{operator}' to {variable}: {e}",
                expression=variable,
            ) from e

        raise EvaluationError(f"Switch condition has no known test: {condition}")
