"""Node routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.dependencies import get_node_service
from ..core.exceptions import NodeNotFoundError
from ..schemas.node import NodeTypeResponse
from ..services.node_service import NodeService

router = APIRouter(prefix="/nodes")


NodeServiceDep = Annotated[NodeService, Depends(get_node_service)]


@router.get("", response_model=list[NodeTypeResponse], response_model_by_alias=True)
async def list_nodes(
    service: NodeServiceDep,
    group: str | None = Query(None, description="Filter by node group"),
) -> list[NodeTypeResponse]:
    """List all node types with their config schemas."""
    return service.list_nodes(group)


@router.get("/{node_type}", response_model=NodeTypeResponse, response_model_by_alias=True)
async def get_node_schema(
    node_type: str,
    service: NodeServiceDep,
) -> NodeTypeResponse:
    """Get schema for a specific node type."""
    try:
        return service.get_node(node_type)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
