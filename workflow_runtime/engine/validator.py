"""Static structural validation of workflow definitions."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.exceptions import DefinitionError
from .types import BRANCHING_NODE_TYPES, NodeType, WorkflowDefinition

if TYPE_CHECKING:
    from .node_registry import NodeRegistryClass

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of validating a definition."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def find_cycle(adjacency: dict[str, list[str]]) -> list[str] | None:
    """
    Return one cycle as a list of node ids, or None if the graph is acyclic.

    Iterative DFS with white/grey/black colouring so deep graphs cannot
    exhaust the interpreter stack.
    """
    white, grey, black = 0, 1, 2
    color = {node: white for node in adjacency}

    for root in adjacency:
        if color[root] != white:
            continue
        color[root] = grey
        # The stack is the current DFS path
        stack = [(root, iter(adjacency[root]))]

        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                color[node] = black
                stack.pop()
                continue
            state = color.get(child, white)
            if state == grey:
                path = [n for n, _ in stack]
                return path[path.index(child):] + [child]
            if state == white:
                color[child] = grey
                stack.append((child, iter(adjacency.get(child, []))))

    return None


class DefinitionValidator:
    """Checks a definition once, before any execution starts."""

    def __init__(self, registry: NodeRegistryClass | None = None) -> None:
        if registry is None:
            from .node_registry import node_registry

            registry = node_registry
        self._registry = registry

    def validate(self, definition: WorkflowDefinition) -> ValidationResult:
        """
        Validate a definition and raise if it has any errors.

        Raises:
            DefinitionError: With every problem found in `details["errors"]`
        """
        result = self.check(definition)
        if not result.is_valid:
            raise DefinitionError(
                f"Invalid workflow definition '{definition.id}': {result.errors[0]}"
                + (f" (+{len(result.errors) - 1} more)" if len(result.errors) > 1 else ""),
                errors=result.errors,
            )
        for warning in result.warnings:
            logger.warning("Workflow %s: %s", definition.id, warning)
        return result

    def check(self, definition: WorkflowDefinition) -> ValidationResult:
        """Collect all errors and warnings without raising."""
        result = ValidationResult()
        errors = result.errors

        if not definition.id:
            errors.append("Workflow id is required")
        if not definition.nodes:
            errors.append("Workflow has no nodes")
            return result

        max_iterations = definition.config.max_iterations
        if max_iterations is not None and (
            isinstance(max_iterations, bool)
            or not isinstance(max_iterations, int)
            or max_iterations < 1
        ):
            errors.append(f"config.maxIterations must be a positive integer, got {max_iterations!r}")

        node_ids = [n.id for n in definition.nodes]
        for node_id, count in Counter(node_ids).items():
            if count > 1:
                errors.append(f"Duplicate node id '{node_id}'")
        edge_ids = [e.id for e in definition.edges if e.id]
        for edge_id, count in Counter(edge_ids).items():
            if count > 1:
                errors.append(f"Duplicate edge id '{edge_id}'")

        types = Counter(n.type for n in definition.nodes)
        if types[NodeType.START.value] != 1:
            errors.append(
                f"Workflow must have exactly one start node, found {types[NodeType.START.value]}"
            )
        if types[NodeType.END.value] < 1:
            errors.append("Workflow must have at least one end node")

        node_map = definition.node_map()
        for edge in definition.edges:
            label = edge.id or f"{edge.source}->{edge.target}"
            if edge.source not in node_map:
                errors.append(f"Edge '{label}' has unknown source '{edge.source}'")
            if edge.target not in node_map:
                errors.append(f"Edge '{label}' has unknown target '{edge.target}'")

        for node in definition.nodes:
            if not self._registry.has(node.type):
                errors.append(f"Node '{node.id}' has unknown type '{node.type}'")
                continue
            for problem in self._registry.get(node.type).validate_config(node):
                errors.append(f"Node '{node.id}': {problem}")

        self._check_routing(definition, errors)

        adjacency: dict[str, list[str]] = {n.id: [] for n in definition.nodes}
        for edge in definition.edges:
            if edge.source in adjacency and edge.target in node_map:
                adjacency[edge.source].append(edge.target)

        if not definition.config.allow_cycles:
            cycle = find_cycle(adjacency)
            if cycle:
                errors.append(
                    f"Cycle detected but allowCycles is false: {' -> '.join(cycle)}"
                )

        start = definition.find_start_node()
        if start:
            unreachable = set(adjacency) - self._reachable(start.id, adjacency)
            if unreachable:
                result.warnings.append(
                    f"Unreachable nodes: {', '.join(sorted(unreachable))}"
                )

        return result

    def _check_routing(self, definition: WorkflowDefinition, errors: list[str]) -> None:
        for node in definition.nodes:
            outgoing = definition.outgoing(node.id)

            if node.type == NodeType.END.value:
                if outgoing:
                    errors.append(f"End node '{node.id}' must not have outgoing edges")
                continue

            if not outgoing:
                errors.append(f"Node '{node.id}' has no outgoing edges")
                continue

            unconditional = [e for e in outgoing if e.condition is None]
            if node.type in BRANCHING_NODE_TYPES:
                for edge in unconditional:
                    errors.append(
                        f"Edge '{edge.id or edge.target}' from {node.type} node '{node.id}' "
                        f"needs a condition on the branch"
                    )
            elif len(unconditional) > 1:
                errors.append(
                    f"Node '{node.id}' has {len(unconditional)} unconditional outgoing edges"
                )

            seen: dict[tuple[str, str], str] = {}
            for edge in outgoing:
                condition = edge.condition
                if condition is None:
                    continue
                if condition.type == "expression":
                    if not isinstance(condition.value, str) or not condition.value.strip():
                        errors.append(
                            f"Edge '{edge.id or edge.target}' has an expression condition without an expression"
                        )
                    continue
                if not isinstance(condition.field, str) or not condition.field:
                    errors.append(
                        f"Edge '{edge.id or edge.target}' condition field must be a non-empty string, "
                        f"got {condition.field!r}"
                    )
                    continue
                if condition.type != "equals":
                    continue
                key = (condition.field, str(condition.value).lower())
                if key in seen:
                    errors.append(
                        f"Edges '{seen[key]}' and '{edge.id or edge.target}' from "
                        f"'{node.id}' match the same value '{condition.value}'"
                    )
                else:
                    seen[key] = edge.id or edge.target

    @staticmethod
    def _reachable(start_id: str, adjacency: dict[str, list[str]]) -> set[str]:
        seen = {start_id}
        stack = [start_id]
        while stack:
            for target in adjacency.get(stack.pop(), []):
                if target not in seen:
                    seen.add(target)
                    stack.append(target)
        return seen
