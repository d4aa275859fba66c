"""Core workflow runtime components."""

from .types import (
    ExecutionContext,
    ExecutionEvent,
    ExecutionEventType,
    ExecutionState,
    ExecutionStatus,
    NodeResult,
    Suspend,
    WorkflowDefinition,
)
from .expression_engine import ExpressionEngine, expression_engine
from .edge_resolver import EdgeResolver, edge_resolver
from .node_registry import NodeRegistryClass, node_registry, register_all_nodes
from .variable_store import VariableStore
from .validator import DefinitionValidator
from .runner import WorkflowRunner

__all__ = [
    "ExecutionContext",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionState",
    "ExecutionStatus",
    "NodeResult",
    "Suspend",
    "WorkflowDefinition",
    "ExpressionEngine",
    "expression_engine",
    "EdgeResolver",
    "edge_resolver",
    "NodeRegistryClass",
    "node_registry",
    "register_all_nodes",
    "VariableStore",
    "DefinitionValidator",
    "WorkflowRunner",
]
