"""Workflow routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..core.dependencies import get_execution_service, get_workflow_service
from ..core.exceptions import (
    AuthorizationError,
    CheckpointError,
    DefinitionError,
    InputError,
    WorkflowNotFoundError,
)
from ..schemas.common import SuccessResponse
from ..schemas.execution import ExecutionStateResponse, StartExecutionRequest
from ..schemas.workflow import (
    ValidationResponse,
    WorkflowDefinitionSchema,
    WorkflowDetailResponse,
    WorkflowListItem,
)
from ..services.execution_service import ExecutionService
from ..services.workflow_service import WorkflowService

router = APIRouter(prefix="/workflows")


# Type aliases for dependency injection
WorkflowServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]
ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]


@router.get("", response_model=list[WorkflowListItem])
async def list_workflows(service: WorkflowServiceDep) -> list[WorkflowListItem]:
    """List all registered workflows."""
    return service.list_workflows()


@router.post("", response_model=WorkflowDetailResponse, status_code=201)
async def create_workflow(
    request: WorkflowDefinitionSchema,
    service: WorkflowServiceDep,
) -> WorkflowDetailResponse:
    """Validate and register a workflow definition."""
    try:
        return service.create_workflow(request)
    except DefinitionError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "errors": e.errors})


@router.post("/validate", response_model=ValidationResponse)
async def validate_workflow(
    request: WorkflowDefinitionSchema,
    service: WorkflowServiceDep,
) -> ValidationResponse:
    """Check a definition without registering it."""
    return service.validate_workflow(request)


@router.get("/{workflow_id}", response_model=WorkflowDetailResponse)
async def get_workflow(
    workflow_id: str,
    service: WorkflowServiceDep,
) -> WorkflowDetailResponse:
    """Get a workflow by ID."""
    try:
        return service.get_workflow(workflow_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/{workflow_id}", response_model=SuccessResponse)
async def delete_workflow(
    workflow_id: str,
    service: WorkflowServiceDep,
) -> SuccessResponse:
    """Delete a workflow."""
    try:
        service.delete_workflow(workflow_id)
        return SuccessResponse(message=f"Workflow {workflow_id} deleted")
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{workflow_id}/executions", response_model=ExecutionStateResponse, status_code=201)
async def start_execution(
    workflow_id: str,
    request: StartExecutionRequest,
    service: ExecutionServiceDep,
) -> ExecutionStateResponse:
    """
    Start a workflow.

    The call returns once the run completes, fails, or suspends at a
    human checkpoint. Failures inside the run are reported in the
    returned state, not as an HTTP error.
    """
    try:
        return await service.start_execution(workflow_id, request)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except DefinitionError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "errors": e.errors})
    except InputError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except CheckpointError as e:
        raise HTTPException(status_code=503, detail=e.message)
