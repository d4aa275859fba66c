"""Main entry point for the workflow runtime server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.dependencies import get_node_registry, get_workflow_service, get_workflow_store
from .engine.node_registry import register_all_nodes
from .routes import api_router
from .schemas.common import HealthResponse, RootResponse

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    register_all_nodes()

    if settings.checkpoint_backend == "database":
        from .db import init_db

        await init_db()
        logger.info("Checkpoint database initialized")

    if settings.workflows_dir:
        service = get_workflow_service(get_workflow_store(), get_node_registry())
        service.load_directory(settings.workflows_dir)

    logger.info("%s v%s started", settings.app_name, settings.app_version)
    logger.info("Running on http://%s:%s", settings.host, settings.port)

    yield

    logger.info("%s stopped", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Workflow runtime - graph execution with human checkpoints and agents",
        version=settings.app_version,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(api_router)

    @app.get("/", response_model=RootResponse)
    async def root() -> RootResponse:
        """Root endpoint."""
        return RootResponse(
            name=settings.app_name,
            version=settings.app_version,
            status="running",
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            checkpoint_backend=settings.checkpoint_backend,
        )

    return app


app = create_app()


def main() -> None:
    """Run the server."""
    configure_logging()
    uvicorn.run(
        "workflow_runtime.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
