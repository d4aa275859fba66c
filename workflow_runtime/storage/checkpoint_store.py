"""Checkpoint gateway: durable storage for suspended executions."""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..engine.types import ExecutionState

logger = logging.getLogger(__name__)


class CheckpointGateway(ABC):
    """
    Persists ExecutionState snapshots by execution id.

    Implementations raise CheckpointError when the backend fails.
    """

    @abstractmethod
    async def save(self, execution_id: str, state: ExecutionState) -> None:
        ...

    @abstractmethod
    async def load(self, execution_id: str) -> ExecutionState | None:
        ...

    @abstractmethod
    async def delete(self, execution_id: str) -> None:
        ...


class InMemoryCheckpointStore(CheckpointGateway):
    """Process-local gateway that keeps serialized snapshots."""

    def __init__(self) -> None:
        self._checkpoints: dict[str, dict[str, Any]] = {}

    async def save(self, execution_id: str, state: ExecutionState) -> None:
        self._checkpoints[execution_id] = state.to_dict()
        logger.debug("Checkpoint saved for %s (%s)", execution_id, state.status.value)

    async def load(self, execution_id: str) -> ExecutionState | None:
        from ..engine.types import ExecutionState

        snapshot = self._checkpoints.get(execution_id)
        if snapshot is None:
            return None
        return ExecutionState.from_dict(copy.deepcopy(snapshot))

    async def delete(self, execution_id: str) -> None:
        self._checkpoints.pop(execution_id, None)

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._checkpoints

    def __len__(self) -> int:
        return len(self._checkpoints)
