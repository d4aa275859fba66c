"""FastAPI dependency injection for the workflow runtime."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends

from .config import settings

if TYPE_CHECKING:
    from ..engine.node_registry import NodeRegistryClass
    from ..engine.runner import WorkflowRunner
    from ..storage.checkpoint_store import CheckpointGateway
    from ..storage.execution_store import ExecutionStore
    from ..storage.workflow_store import WorkflowStore


# --- Store Dependencies ---


def get_workflow_store() -> WorkflowStore:
    """Get workflow store instance."""
    from ..storage.workflow_store import workflow_store

    return workflow_store


def get_execution_store() -> ExecutionStore:
    """Get execution store instance."""
    from ..storage.execution_store import execution_store

    return execution_store


@lru_cache
def get_checkpoint_gateway() -> CheckpointGateway:
    """Get the checkpoint gateway selected by settings.checkpoint_backend."""
    if settings.checkpoint_backend == "database":
        from ..db import async_session_factory
        from ..repositories import CheckpointRepository

        return CheckpointRepository(async_session_factory)

    from ..storage.checkpoint_store import InMemoryCheckpointStore

    return InMemoryCheckpointStore()


@lru_cache
def get_node_registry() -> NodeRegistryClass:
    """Get node registry instance."""
    from ..engine.node_registry import node_registry

    return node_registry


@lru_cache
def get_runner() -> WorkflowRunner:
    """Get the process-wide runner; it owns per-execution locks."""
    from ..engine.runner import WorkflowRunner

    return WorkflowRunner(
        workflow_store=get_workflow_store(),
        execution_store=get_execution_store(),
        checkpoint_gateway=get_checkpoint_gateway(),
        registry=get_node_registry(),
    )


# --- Service Dependencies ---


def get_workflow_service(
    workflow_store=Depends(get_workflow_store),
    node_registry=Depends(get_node_registry),
):
    """Get workflow service instance."""
    from ..engine.validator import DefinitionValidator
    from ..services.workflow_service import WorkflowService

    return WorkflowService(workflow_store, DefinitionValidator(node_registry))


def get_execution_service(
    runner=Depends(get_runner),
    execution_store=Depends(get_execution_store),
):
    """Get execution service instance."""
    from ..services.execution_service import ExecutionService

    return ExecutionService(runner, execution_store)


def get_node_service(
    node_registry=Depends(get_node_registry),
):
    """Get node service instance."""
    from ..services.node_service import NodeService

    return NodeService(node_registry)
