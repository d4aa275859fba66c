"""Execution service for business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..schemas.execution import (
    CancelExecutionRequest,
    ExecutionListItem,
    ExecutionStateResponse,
    ResumeExecutionRequest,
    StartExecutionRequest,
)

if TYPE_CHECKING:
    from ..engine.runner import WorkflowRunner
    from ..storage.execution_store import ExecutionStore


class ExecutionService:
    """Service for starting, resuming, inspecting and cancelling executions."""

    def __init__(self, runner: WorkflowRunner, execution_store: ExecutionStore) -> None:
        self._runner = runner
        self._execution_store = execution_store

    async def start_execution(
        self, workflow_id: str, request: StartExecutionRequest
    ) -> ExecutionStateResponse:
        """Start a registered workflow and run it until it ends or suspends."""
        state = await self._runner.start(
            workflow_id,
            request.input,
            caller=request.user.to_caller() if request.user else None,
            language=request.language,
        )
        return ExecutionStateResponse.from_state(state)

    async def resume_execution(
        self, execution_id: str, request: ResumeExecutionRequest
    ) -> ExecutionStateResponse:
        state = await self._runner.resume(
            execution_id,
            request.branch,
            request.input,
            caller=request.user.to_caller() if request.user else None,
            language=request.language,
        )
        return ExecutionStateResponse.from_state(state)

    async def get_execution(self, execution_id: str) -> ExecutionStateResponse:
        """Get an execution by ID."""
        state = await self._runner.status(execution_id)
        return ExecutionStateResponse.from_state(state)

    async def cancel_execution(
        self, execution_id: str, request: CancelExecutionRequest
    ) -> ExecutionStateResponse:
        state = await self._runner.cancel(
            execution_id,
            caller=request.user.to_caller() if request.user else None,
        )
        return ExecutionStateResponse.from_state(state)

    def list_executions(
        self,
        workflow_id: str | None = None,
        status: str | None = None,
    ) -> list[ExecutionListItem]:
        """List executions held in memory, newest first."""
        return [
            ExecutionListItem(
                execution_id=s.execution_id,
                workflow_id=s.workflow_id,
                status=s.status.value,
                current_node_id=s.current_node_id,
                steps=s.steps,
                created_at=s.created_at,
                updated_at=s.updated_at,
            )
            for s in self._execution_store.list(workflow_id, status)
        ]
