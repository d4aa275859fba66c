"""Core type definitions for the workflow runtime."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Literal

if TYPE_CHECKING:
    from .agent_bridge import AgentBridge
    from .tools import ToolRegistry
    from .variable_store import VariableStore

# A plain string or a {locale: text} mapping
LocalizedText = str | dict[str, str]

PersistenceMode = Literal["none", "session", "long_term"]
ObservabilityMode = Literal["minimal", "standard", "full"]


class NodeType(str, Enum):
    """The closed set of node types a workflow may contain."""

    START = "start"
    TRANSFORM = "transform"
    DECISION = "decision"
    HUMAN = "human"
    AGENT = "agent"
    END = "end"


# Node types whose result carries a branch used for routing
BRANCHING_NODE_TYPES = frozenset({NodeType.DECISION.value, NodeType.HUMAN.value})


class ExecutionStatus(str, Enum):
    """Lifecycle status of an execution."""

    RUNNING = "running"
    WAITING_HUMAN = "waiting_human"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )


# --- Workflow Schema Types ---


@dataclass
class WorkflowConfig:
    """Execution settings declared by a workflow."""

    max_iterations: int | None = None
    allow_cycles: bool = True
    persistence: PersistenceMode = "session"
    observability: ObservabilityMode = "standard"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorkflowConfig:
        data = data or {}
        return cls(
            max_iterations=data.get("maxIterations"),
            allow_cycles=data.get("allowCycles", True),
            persistence=data.get("persistence", "session"),
            observability=data.get("observability", "standard"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "allowCycles": self.allow_cycles,
            "persistence": self.persistence,
            "observability": self.observability,
        }
        if self.max_iterations is not None:
            result["maxIterations"] = self.max_iterations
        return result


@dataclass
class NodeDefinition:
    """Definition of a node in a workflow."""

    id: str
    type: str
    name: LocalizedText | None = None
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeDefinition:
        return cls(
            id=data["id"],
            type=data["type"],
            name=data.get("name"),
            config=dict(data.get("config") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "name": self.name, "config": self.config}


@dataclass
class EdgeCondition:
    """Guard on an edge, tested against the upstream node's result."""

    field: str
    value: Any = None
    type: str = "equals"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EdgeCondition:
        return cls(
            field=data.get("field", "result.branch"),
            value=data.get("value"),
            type=data.get("type", "equals"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "field": self.field, "value": self.value}


@dataclass
class EdgeDefinition:
    """Directed edge between two nodes."""

    source: str
    target: str
    id: str | None = None
    condition: EdgeCondition | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EdgeDefinition:
        condition = data.get("condition")
        return cls(
            id=data.get("id"),
            source=data["source"],
            target=data["target"],
            condition=EdgeCondition.from_dict(condition) if condition else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.condition:
            result["condition"] = self.condition.to_dict()
        return result


@dataclass
class WorkflowDefinition:
    """Workflow definition, read-only once loaded for a run."""

    id: str
    nodes: list[NodeDefinition]
    edges: list[EdgeDefinition]
    name: LocalizedText | None = None
    description: LocalizedText | None = None
    version: str | None = None
    enabled: bool = True
    config: WorkflowConfig = field(default_factory=WorkflowConfig)
    allowed_groups: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowDefinition:
        """Build a definition from its JSON shape."""
        return cls(
            id=data["id"],
            name=data.get("name"),
            description=data.get("description"),
            version=data.get("version"),
            enabled=data.get("enabled", True),
            config=WorkflowConfig.from_dict(data.get("config")),
            nodes=[NodeDefinition.from_dict(n) for n in data.get("nodes") or []],
            edges=[EdgeDefinition.from_dict(e) for e in data.get("edges") or []],
            allowed_groups=list(data.get("allowedGroups") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "enabled": self.enabled,
            "config": self.config.to_dict(),
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "allowedGroups": self.allowed_groups,
        }

    def node_map(self) -> dict[str, NodeDefinition]:
        return {n.id: n for n in self.nodes}

    def outgoing(self, node_id: str) -> list[EdgeDefinition]:
        return [e for e in self.edges if e.source == node_id]

    def find_start_node(self) -> NodeDefinition | None:
        return next((n for n in self.nodes if n.type == NodeType.START.value), None)


# --- Node results ---


@dataclass
class NodeResult:
    """
    Outcome of a node execution.

    `data` holds top-level updates merged into the variable store,
    `branch` selects an outgoing edge for decision and human nodes,
    and `output` is the node's own record kept in the step history.
    """

    data: dict[str, Any] = field(default_factory=dict)
    branch: str | None = None
    output: dict[str, Any] = field(default_factory=dict)


@dataclass
class Suspend:
    """Signal returned by a node that must wait for external input."""

    checkpoint: dict[str, Any]
    reason: str = "human_input_required"


# --- Execution state ---


@dataclass
class StepRecord:
    """One node execution within a run."""

    node_id: str
    node_type: str
    status: str
    started_at: str
    completed_at: str | None = None
    branch: str | None = None
    output: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "status": self.status,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "branch": self.branch,
            "output": self.output,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepRecord:
        return cls(
            node_id=data["nodeId"],
            node_type=data["nodeType"],
            status=data["status"],
            started_at=data["startedAt"],
            completed_at=data.get("completedAt"),
            branch=data.get("branch"),
            output=data.get("output"),
            error=data.get("error"),
        )


@dataclass
class ExecutionState:
    """
    Serializable state of one execution.

    Holds no closures or call-stack references so it can be checkpointed,
    reloaded in another process, and resumed.
    """

    execution_id: str
    workflow_id: str
    current_node_id: str | None
    data: dict[str, Any] = field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    # Highest number of times any single node has executed
    iteration: int = 0
    steps: int = 0
    visits: dict[str, int] = field(default_factory=dict)
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    checkpoint: dict[str, Any] | None = None
    history: list[StepRecord] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def touch(self) -> None:
        self.updated_at = datetime.now().isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "workflowId": self.workflow_id,
            "currentNodeId": self.current_node_id,
            "data": copy.deepcopy(self.data),
            "status": self.status.value,
            "iteration": self.iteration,
            "steps": self.steps,
            "visits": dict(self.visits),
            "result": copy.deepcopy(self.result),
            "error": copy.deepcopy(self.error),
            "checkpoint": copy.deepcopy(self.checkpoint),
            "history": [h.to_dict() for h in self.history],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionState:
        return cls(
            execution_id=data["executionId"],
            workflow_id=data["workflowId"],
            current_node_id=data.get("currentNodeId"),
            data=copy.deepcopy(data.get("data") or {}),
            status=ExecutionStatus(data.get("status", ExecutionStatus.RUNNING.value)),
            iteration=data.get("iteration", 0),
            steps=data.get("steps", 0),
            visits=dict(data.get("visits") or {}),
            result=copy.deepcopy(data.get("result")),
            error=copy.deepcopy(data.get("error")),
            checkpoint=copy.deepcopy(data.get("checkpoint")),
            history=[StepRecord.from_dict(h) for h in data.get("history") or []],
            created_at=data.get("createdAt") or datetime.now().isoformat(),
            updated_at=data.get("updatedAt") or datetime.now().isoformat(),
        )


# --- Events ---


class ExecutionEventType(str, Enum):
    """Types of execution events delivered to observers."""

    EXECUTION_START = "execution:start"
    NODE_START = "node:start"
    NODE_COMPLETE = "node:complete"
    NODE_ERROR = "node:error"
    EXECUTION_SUSPENDED = "execution:suspended"
    EXECUTION_RESUMED = "execution:resumed"
    EXECUTION_COMPLETE = "execution:complete"
    EXECUTION_ERROR = "execution:error"
    EXECUTION_CANCELLED = "execution:cancelled"


@dataclass
class ExecutionEvent:
    """Execution event for observers."""

    type: ExecutionEventType
    execution_id: str
    timestamp: datetime
    node_id: str | None = None
    node_type: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None


# Callback type for receiving execution events
ExecutionEventCallback = Callable[[ExecutionEvent], None]


# --- Runtime context ---


@dataclass
class ExecutionContext:
    """
    Runtime context handed to node executors for one step.

    Unlike ExecutionState this holds live collaborators and is never
    persisted.
    """

    workflow: WorkflowDefinition
    state: ExecutionState
    store: VariableStore
    language: str = "en"
    agent_bridge: AgentBridge | None = None
    tools: ToolRegistry | None = None
    cancel_event: asyncio.Event | None = None

    @property
    def execution_id(self) -> str:
        return self.state.execution_id

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        from ..core.exceptions import ExecutionCancelledError

        if self.cancelled:
            raise ExecutionCancelledError(self.execution_id)
