"""Start node - validates caller inputs and seeds the variable store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TYPE_CHECKING

from ..core.exceptions import InputError
from .base import BaseNode, NodeProperty, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition

# Declared input type -> accepted Python types
INPUT_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def matches_type(value: Any, type_name: str) -> bool:
    """Check a JSON value against a declared type; bools are not numbers."""
    if type_name == "number" and isinstance(value, bool):
        return False
    return isinstance(value, INPUT_TYPES[type_name])


class StartNode(BaseNode):
    """Entry point of every workflow."""

    node_description = NodeTypeDescription(
        name="start",
        display_name="Start",
        description="Validate workflow inputs and seed the variable store",
        icon="fa:play",
        group=["trigger"],
        properties=[
            NodeProperty(
                display_name="Input Variables",
                name="inputVariables",
                type="json",
                default=[],
                required=True,
                description="List of {name, type, required, default} input declarations; may be empty",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "start"

    @property
    def description(self) -> str:
        return "Validate workflow inputs and seed the variable store"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        errors = super().validate_config(node_definition)
        declared = node_definition.config.get("inputVariables")
        if declared is None:
            return errors
        if not isinstance(declared, list):
            return [*errors, "inputVariables must be a list"]
        for index, entry in enumerate(declared):
            if not isinstance(entry, dict) or not entry.get("name"):
                errors.append(f"inputVariables[{index}] needs a name")
                continue
            type_name = entry.get("type", "string")
            if type_name not in INPUT_TYPES:
                errors.append(
                    f"inputVariables[{index}] has unknown type '{type_name}'"
                )
        return errors

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import NodeResult

        inputs: dict[str, Any] = dict(context.store.data)
        declared = self.get_parameter(node_definition, "inputVariables", [])

        for entry in declared:
            name = entry["name"]
            type_name = entry.get("type", "string")
            value = inputs.get(name)

            if value is None:
                if "default" in entry:
                    inputs[name] = entry["default"]
                    continue
                if entry.get("required", False):
                    raise InputError(f"Missing required input '{name}'", field=name)
                continue

            if not matches_type(value, type_name):
                raise InputError(
                    f"Input '{name}' must be of type {type_name}, "
                    f"got {type(value).__name__}",
                    field=name,
                )

        return NodeResult(
            data=inputs,
            output={
                "initialized": True,
                "timestamp": datetime.now().isoformat(),
                "inputFields": sorted(inputs),
            },
        )
