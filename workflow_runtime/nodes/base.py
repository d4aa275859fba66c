"""Base node class for all workflow nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ..core.exceptions import DefinitionError, InvalidExecutionStateError

if TYPE_CHECKING:
    from ..engine.types import (
        ExecutionContext,
        NodeDefinition,
        NodeResult,
        Suspend,
    )


@dataclass
class NodePropertyOption:
    """Option for a node property."""

    name: str
    value: str
    description: str | None = None


@dataclass
class NodeProperty:
    """Config key accepted by a node type."""

    display_name: str
    name: str
    type: str  # string, number, boolean, options, collection, json
    default: Any = None
    required: bool = False
    description: str | None = None
    placeholder: str | None = None
    options: list[NodePropertyOption] | None = None


@dataclass
class NodeTypeDescription:
    """Description of a node type, served by the node listing endpoint."""

    name: str
    display_name: str
    description: str
    icon: str | None = None
    group: list[str] = field(default_factory=lambda: ["transform"])
    properties: list[NodeProperty] = field(default_factory=list)
    # Whether the node's result carries a branch used for routing
    branching: bool = False
    # Whether the node can suspend the execution
    suspends: bool = False


class BaseNode(ABC):
    """
    Abstract base class for all workflow nodes.

    Node instances are stateless; everything a node needs for one step
    arrives through the ExecutionContext.
    """

    node_description: NodeTypeDescription | None = None

    @property
    @abstractmethod
    def type(self) -> str:
        """Node type identifier."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description of what the node does."""
        ...

    @abstractmethod
    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ) -> NodeResult | Suspend:
        """Execute the node logic."""
        ...

    async def resume(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
        branch: str,
        input_data: dict[str, Any] | None = None,
    ) -> NodeResult:
        """Continue a suspended node with external input."""
        raise InvalidExecutionStateError(context.execution_id, context.state.status.value, "resume")

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        """
        Static checks on a node's config, run before any execution.

        The default checks required properties; subclasses extend it.
        """
        errors = []
        if self.node_description:
            for prop in self.node_description.properties:
                if prop.required and node_definition.config.get(prop.name) in (None, ""):
                    errors.append(f'missing required config "{prop.name}"')
        return errors

    def get_parameter(
        self,
        node_definition: NodeDefinition,
        key: str,
        default: Any = None,
    ) -> Any:
        """Get a config value from node definition."""
        value = node_definition.config.get(key)
        if value is None:
            if default is None and self._is_required_parameter(key):
                raise DefinitionError(
                    f'Missing required config "{key}" in node "{node_definition.id}"'
                )
            return default
        return value

    def _is_required_parameter(self, key: str) -> bool:
        """Check if a parameter is required."""
        if not self.node_description:
            return False
        for prop in self.node_description.properties:
            if prop.name == key:
                return prop.required
        return False
