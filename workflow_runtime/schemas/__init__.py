"""Pydantic schemas for the HTTP API."""

from .common import HealthResponse, RootResponse, SuccessResponse
from .execution import (
    CancelExecutionRequest,
    ExecutionListItem,
    ExecutionStateResponse,
    ResumeExecutionRequest,
    StartExecutionRequest,
    UserSchema,
)
from .node import NodeTypeResponse
from .workflow import (
    ValidationResponse,
    WorkflowDefinitionSchema,
    WorkflowDetailResponse,
    WorkflowListItem,
)

__all__ = [
    "CancelExecutionRequest",
    "ExecutionListItem",
    "ExecutionStateResponse",
    "HealthResponse",
    "NodeTypeResponse",
    "ResumeExecutionRequest",
    "RootResponse",
    "StartExecutionRequest",
    "SuccessResponse",
    "UserSchema",
    "ValidationResponse",
    "WorkflowDefinitionSchema",
    "WorkflowDetailResponse",
    "WorkflowListItem",
]
