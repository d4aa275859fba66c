"""Node-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class NodeTypeResponse(BaseModel):
    """Config schema of a registered node type."""

    type: str
    display_name: str = Field(..., alias="displayName")
    description: str
    icon: str | None = None
    group: list[str] | None = None
    branching: bool = False
    suspends: bool = False
    properties: list[dict[str, Any]] = Field(default_factory=list)

    class Config:
        populate_by_name = True
