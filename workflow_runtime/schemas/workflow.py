"""Workflow-related Pydantic schemas."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ..engine.types import WorkflowDefinition

# A plain string or a {locale: text} mapping
LocalizedTextSchema = str | dict[str, str]


class NodeSchema(BaseModel):
    """Schema for a node in a workflow definition."""

    id: str = Field(..., min_length=1, description="Node id, unique within the workflow")
    type: str = Field(..., description="Node type: start, transform, decision, human, agent, end")
    name: LocalizedTextSchema | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class EdgeConditionSchema(BaseModel):
    """Guard tested against the upstream node's result."""

    type: str = "equals"
    field: str = "result.branch"
    value: Any = None


class EdgeSchema(BaseModel):
    """Schema for a directed edge."""

    id: str | None = None
    source: str
    target: str
    condition: EdgeConditionSchema | None = None


class WorkflowConfigSchema(BaseModel):
    """Execution settings declared by a workflow."""

    max_iterations: int | None = Field(None, ge=1, alias="maxIterations")
    allow_cycles: bool = Field(True, alias="allowCycles")
    persistence: Literal["none", "session", "long_term"] = "session"
    observability: Literal["minimal", "standard", "full"] = "standard"

    class Config:
        populate_by_name = True


class WorkflowDefinitionSchema(BaseModel):
    """Request body carrying a full workflow definition."""

    id: str = Field("", description="Workflow id; generated when empty")
    name: LocalizedTextSchema | None = None
    description: LocalizedTextSchema | None = None
    version: str | None = None
    enabled: bool = True
    config: WorkflowConfigSchema = Field(default_factory=WorkflowConfigSchema)
    nodes: list[NodeSchema] = Field(..., min_length=1)
    edges: list[EdgeSchema] = Field(default_factory=list)
    allowed_groups: list[str] = Field(default_factory=list, alias="allowedGroups")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "greeting",
                "name": {"en": "Greeting", "de": "Begrüßung"},
                "config": {"maxIterations": 5, "persistence": "session"},
                "nodes": [
                    {
                        "id": "start",
                        "type": "start",
                        "config": {
                            "inputVariables": [
                                {"name": "name", "type": "string", "required": True}
                            ]
                        },
                    },
                    {
                        "id": "greet",
                        "type": "transform",
                        "config": {
                            "operations": [
                                {"set": "message", "value": "Hello {{name}}"}
                            ]
                        },
                    },
                    {"id": "end", "type": "end", "config": {"outputVariables": ["message"]}},
                ],
                "edges": [
                    {"source": "start", "target": "greet"},
                    {"source": "greet", "target": "end"},
                ],
            }
        }

    def to_definition(self) -> WorkflowDefinition:
        """Convert to the engine's definition type."""
        return WorkflowDefinition.from_dict(self.model_dump(by_alias=True, exclude_none=True))


class WorkflowListItem(BaseModel):
    """Workflow item in list response."""

    id: str
    name: LocalizedTextSchema | None = None
    version: str | None = None
    enabled: bool
    node_count: int
    allowed_groups: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class WorkflowDetailResponse(BaseModel):
    """Detailed workflow response, including the stored definition."""

    id: str
    name: LocalizedTextSchema | None = None
    enabled: bool
    definition: dict[str, Any]
    warnings: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class ValidationResponse(BaseModel):
    """Result of validating a definition without storing it."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
