"""Transform node - apply data instructions to the variable store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.exceptions import DefinitionError
from ..engine.variable_store import parse_instructions
from .base import BaseNode, NodeProperty, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition


class TransformNode(BaseNode):
    """Applies set/copy/increment/push/merge/arrayGet/lengthOf/condition instructions."""

    node_description = NodeTypeDescription(
        name="transform",
        display_name="Transform",
        description="Apply data instructions to workflow variables",
        icon="fa:pen",
        group=["transform"],
        properties=[
            NodeProperty(
                display_name="Operations",
                name="operations",
                type="json",
                default=[],
                required=True,
                description='Instruction list, e.g. [{"increment": "counter", "by": 5}]',
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "transform"

    @property
    def description(self) -> str:
        return "Apply data instructions to workflow variables"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        operations = node_definition.config.get("operations")
        if not isinstance(operations, list):
            return ["operations must be a list"]
        try:
            parse_instructions(operations)
        except DefinitionError as e:
            return [e.message]
        return []

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import NodeResult

        instructions = parse_instructions(self.get_parameter(node_definition, "operations"))
        updates = context.store.compute(instructions)
        return NodeResult(
            data=updates,
            output={"operations": len(instructions), "updated": sorted(updates)},
        )
