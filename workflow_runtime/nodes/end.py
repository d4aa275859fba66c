"""End node - collect the execution result."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..engine.paths import MISSING, get_path, normalize_path
from ..engine.template import render_value
from .base import BaseNode, NodeProperty, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition


class EndNode(BaseNode):
    """Terminal node; its output becomes the execution's result."""

    node_description = NodeTypeDescription(
        name="end",
        display_name="End",
        description="Finish the workflow and return selected variables",
        icon="fa:flag-checkered",
        group=["flow"],
        properties=[
            NodeProperty(
                display_name="Output Variables",
                name="outputVariables",
                type="json",
                default=[],
                description="Dotted paths copied into the result when present",
            ),
            NodeProperty(
                display_name="Output Mapping",
                name="outputMapping",
                type="json",
                description='Result keys mapped to "$.data.path" or literal values',
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "end"

    @property
    def description(self) -> str:
        return "Finish the workflow and return selected variables"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        config = node_definition.config
        mapping = config.get("outputMapping")
        variables = config.get("outputVariables")
        if mapping is not None:
            return [] if isinstance(mapping, dict) else ["outputMapping must be an object"]
        if not isinstance(variables, list) or not all(isinstance(v, str) for v in variables):
            return ["end node needs an outputVariables list or an outputMapping object"]
        return []

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import NodeResult

        data = context.store.data
        mapping = node_definition.config.get("outputMapping")
        if mapping is not None:
            result = self._apply_mapping(mapping, data)
        else:
            result = {}
            for path in self.get_parameter(node_definition, "outputVariables", []):
                value = get_path(data, path)
                if value is not MISSING:
                    result[normalize_path(path)] = value

        return NodeResult(output=result)

    @staticmethod
    def _apply_mapping(mapping: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, source in mapping.items():
            if isinstance(source, str) and source.startswith("$"):
                value = get_path(data, source)
                if value is not MISSING:
                    result[key] = value
            else:
                result[key] = render_value(source, data)
        return result
