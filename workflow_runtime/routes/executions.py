"""Execution routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.dependencies import get_execution_service
from ..core.exceptions import (
    AuthorizationError,
    CheckpointError,
    ExecutionBusyError,
    ExecutionNotFoundError,
    InputError,
    InvalidExecutionStateError,
    WorkflowNotFoundError,
)
from ..schemas.execution import (
    CancelExecutionRequest,
    ExecutionListItem,
    ExecutionStateResponse,
    ResumeExecutionRequest,
)
from ..services.execution_service import ExecutionService

router = APIRouter(prefix="/executions")


ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]


@router.get("", response_model=list[ExecutionListItem])
async def list_executions(
    service: ExecutionServiceDep,
    workflow_id: str | None = Query(None, description="Filter by workflow"),
    status: str | None = Query(None, description="Filter by status"),
) -> list[ExecutionListItem]:
    """List recent executions."""
    return service.list_executions(workflow_id, status)


@router.get("/{execution_id}", response_model=ExecutionStateResponse)
async def get_execution(
    execution_id: str,
    service: ExecutionServiceDep,
) -> ExecutionStateResponse:
    """Get the current state of an execution."""
    try:
        return await service.get_execution(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except CheckpointError as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.post("/{execution_id}/resume", response_model=ExecutionStateResponse)
async def resume_execution(
    execution_id: str,
    request: ResumeExecutionRequest,
    service: ExecutionServiceDep,
) -> ExecutionStateResponse:
    """Answer a human checkpoint and continue the run."""
    try:
        return await service.resume_execution(execution_id, request)
    except (ExecutionNotFoundError, WorkflowNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except InputError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except (InvalidExecutionStateError, ExecutionBusyError) as e:
        raise HTTPException(status_code=409, detail=e.message)
    except CheckpointError as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.post("/{execution_id}/cancel", response_model=ExecutionStateResponse)
async def cancel_execution(
    execution_id: str,
    service: ExecutionServiceDep,
    request: CancelExecutionRequest | None = None,
) -> ExecutionStateResponse:
    """Cancel a waiting or running execution."""
    try:
        return await service.cancel_execution(execution_id, request or CancelExecutionRequest())
    except (ExecutionNotFoundError, WorkflowNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except (InvalidExecutionStateError, ExecutionBusyError) as e:
        raise HTTPException(status_code=409, detail=e.message)
    except CheckpointError as e:
        raise HTTPException(status_code=503, detail=e.message)
