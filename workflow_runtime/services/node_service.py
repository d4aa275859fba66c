"""Node service for business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.exceptions import NodeNotFoundError
from ..schemas.node import NodeTypeResponse

if TYPE_CHECKING:
    from ..engine.node_registry import NodeRegistryClass, NodeTypeInfo


class NodeService:
    """Service for node type lookups."""

    def __init__(self, node_registry: NodeRegistryClass) -> None:
        self._node_registry = node_registry

    def list_nodes(self, group: str | None = None) -> list[NodeTypeResponse]:
        """List all registered node types with their config schemas."""
        nodes = self._node_registry.get_node_info_full()
        if group:
            nodes = [n for n in nodes if group in (n.group or [])]
        return [self._to_response(n) for n in nodes]

    def get_node(self, node_type: str) -> NodeTypeResponse:
        info = self._node_registry.get_node_type_info(node_type)
        if not info:
            raise NodeNotFoundError(node_type)
        return self._to_response(info)

    @staticmethod
    def _to_response(info: NodeTypeInfo) -> NodeTypeResponse:
        return NodeTypeResponse(
            type=info.type,
            display_name=info.display_name,
            description=info.description,
            icon=info.icon,
            group=info.group,
            branching=info.branching,
            suspends=info.suspends,
            properties=info.properties,
        )
