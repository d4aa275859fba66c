"""Service layer between routes and the engine."""

from .execution_service import ExecutionService
from .node_service import NodeService
from .workflow_service import WorkflowService

__all__ = ["ExecutionService", "NodeService", "WorkflowService"]
