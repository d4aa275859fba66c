"""Repository layer for data persistence."""

from .checkpoint_repository import CheckpointRepository

__all__ = ["CheckpointRepository"]
