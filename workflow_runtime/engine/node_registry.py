"""Lookup table from node type to the executor that runs it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ..core.exceptions import NodeNotFoundError

if TYPE_CHECKING:
    from ..nodes.base import BaseNode, NodeProperty


def _describe_property(prop: NodeProperty) -> dict[str, Any]:
    described: dict[str, Any] = {
        "displayName": prop.display_name,
        "name": prop.name,
        "type": prop.type,
        "default": prop.default,
    }
    optional = {
        "required": prop.required or None,
        "description": prop.description,
        "placeholder": prop.placeholder,
    }
    described.update({k: v for k, v in optional.items() if v})
    if prop.options:
        described["options"] = [
            {"name": o.name, "value": o.value, "description": o.description}
            for o in prop.options
        ]
    return described


@dataclass
class NodeTypeInfo:
    """What the node listing endpoint reports about one node type."""

    type: str
    display_name: str
    description: str
    icon: str | None = None
    group: list[str] | None = None
    branching: bool = False
    suspends: bool = False
    properties: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_node(cls, node: BaseNode) -> NodeTypeInfo:
        desc = node.node_description
        if desc is None:
            return cls(type=node.type, display_name=node.type, description=node.description)
        return cls(
            type=node.type,
            display_name=desc.display_name,
            description=node.description,
            icon=desc.icon,
            group=desc.group,
            branching=desc.branching,
            suspends=desc.suspends,
            properties=[_describe_property(p) for p in desc.properties],
        )


class NodeRegistryClass:
    """
    Node executors keyed by their type string.

    One instance per type is created at registration. Executors keep no
    per-run state, so the same instance serves every execution.
    """

    def __init__(self) -> None:
        self._executors: dict[str, BaseNode] = {}

    def register(self, node_class: type[BaseNode]) -> None:
        """Register a node class. A type that is already known keeps its first executor."""
        executor = node_class()
        self._executors.setdefault(executor.type, executor)

    def get(self, node_type: str) -> BaseNode:
        """
        Raises:
            NodeNotFoundError: If no executor handles `node_type`
        """
        try:
            return self._executors[node_type]
        except KeyError:
            raise NodeNotFoundError(node_type) from None

    def has(self, node_type: str) -> bool:
        return node_type in self._executors

    def list(self) -> list[str]:
        return list(self._executors)

    def get_node_info_full(self) -> list[NodeTypeInfo]:
        return [NodeTypeInfo.from_node(e) for e in self._executors.values()]

    def get_node_type_info(self, node_type: str) -> NodeTypeInfo | None:
        executor = self._executors.get(node_type)
        return NodeTypeInfo.from_node(executor) if executor else None


node_registry = NodeRegistryClass()


def register_all_nodes() -> None:
    """Register the six built-in node types on the shared registry."""
    from ..nodes import (
        AgentNode,
        DecisionNode,
        EndNode,
        HumanNode,
        StartNode,
        TransformNode,
    )

    for node_class in (StartNode, TransformNode, DecisionNode, HumanNode, AgentNode, EndNode):
        node_registry.register(node_class)
