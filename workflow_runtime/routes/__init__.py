"""FastAPI routes for the workflow runtime."""

from fastapi import APIRouter

from .executions import router as executions_router
from .nodes import router as nodes_router
from .workflows import router as workflows_router

api_router = APIRouter()
api_router.include_router(workflows_router, tags=["Workflows"])
api_router.include_router(executions_router, tags=["Executions"])
api_router.include_router(nodes_router, tags=["Nodes"])

__all__ = ["api_router"]
