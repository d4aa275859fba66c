"""Execution-related Pydantic schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ..core.authorization import Caller
from ..engine.types import ExecutionState


class UserSchema(BaseModel):
    """Caller identity used for allowedGroups checks."""

    id: str | None = None
    groups: list[str] = Field(default_factory=list)

    def to_caller(self) -> Caller:
        return Caller(id=self.id, groups=list(self.groups))


class StartExecutionRequest(BaseModel):
    """Request body for starting an execution."""

    input: dict[str, Any] = Field(default_factory=dict, description="Input variables")
    user: UserSchema | None = None
    language: str | None = Field(None, description="Locale for localized text")

    class Config:
        json_schema_extra = {
            "example": {
                "input": {"amount": 15},
                "user": {"id": "u-1", "groups": ["finance"]},
            }
        }


class ResumeExecutionRequest(BaseModel):
    """Request body for answering a human checkpoint."""

    branch: str = Field(..., min_length=1, description="Chosen option value")
    input: dict[str, Any] | None = None
    user: UserSchema | None = None
    language: str | None = None


class CancelExecutionRequest(BaseModel):
    """Request body for cancelling an execution."""

    user: UserSchema | None = None


class StepRecordSchema(BaseModel):
    """One node execution within a run."""

    node_id: str
    node_type: str
    status: str
    started_at: str
    completed_at: str | None = None
    branch: str | None = None
    output: dict[str, Any] | None = None
    error: str | None = None


class ExecutionErrorSchema(BaseModel):
    """Error recorded on a failed execution."""

    type: str
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    node_id: str | None = None


class ExecutionStateResponse(BaseModel):
    """Snapshot of an execution."""

    execution_id: str
    workflow_id: str
    status: str
    current_node_id: str | None = None
    iteration: int
    steps: int
    data: dict[str, Any]
    result: dict[str, Any] | None = None
    error: ExecutionErrorSchema | None = None
    checkpoint: dict[str, Any] | None = None
    history: list[StepRecordSchema] = Field(default_factory=list)
    created_at: str
    updated_at: str

    @classmethod
    def from_state(cls, state: ExecutionState) -> ExecutionStateResponse:
        snapshot = state.to_dict()
        error = snapshot["error"]
        return cls(
            execution_id=state.execution_id,
            workflow_id=state.workflow_id,
            status=state.status.value,
            current_node_id=state.current_node_id,
            iteration=state.iteration,
            steps=state.steps,
            data=snapshot["data"],
            result=snapshot["result"],
            error=(
                ExecutionErrorSchema(
                    type=error["type"],
                    code=error["code"],
                    message=error["message"],
                    details=error.get("details") or {},
                    node_id=error.get("nodeId"),
                )
                if error
                else None
            ),
            checkpoint=snapshot["checkpoint"],
            history=[
                StepRecordSchema(
                    node_id=h.node_id,
                    node_type=h.node_type,
                    status=h.status,
                    started_at=h.started_at,
                    completed_at=h.completed_at,
                    branch=h.branch,
                    output=h.output,
                    error=h.error,
                )
                for h in state.history
            ],
            created_at=state.created_at,
            updated_at=state.updated_at,
        )


class ExecutionListItem(BaseModel):
    """Execution item in list response."""

    execution_id: str
    workflow_id: str
    status: str
    current_node_id: str | None = None
    steps: int
    created_at: str
    updated_at: str
