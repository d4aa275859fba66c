"""Storage layer for workflows, executions and checkpoints."""

from .workflow_store import StoredWorkflow, WorkflowStore, workflow_store
from .execution_store import ExecutionStore, execution_store
from .checkpoint_store import CheckpointGateway, InMemoryCheckpointStore

__all__ = [
    "StoredWorkflow",
    "WorkflowStore",
    "workflow_store",
    "ExecutionStore",
    "execution_store",
    "CheckpointGateway",
    "InMemoryCheckpointStore",
]
