"""Database configuration and models."""

from .session import (
    async_session_factory,
    create_engine,
    create_session_factory,
    engine,
    init_db,
)
from .models import CheckpointModel

__all__ = [
    "engine",
    "async_session_factory",
    "create_engine",
    "create_session_factory",
    "init_db",
    "CheckpointModel",
]
