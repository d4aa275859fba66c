"""Common schemas used across the API."""

from pydantic import BaseModel


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    checkpoint_backend: str | None = None


class RootResponse(BaseModel):
    """Root endpoint response."""

    name: str
    version: str
    status: str
