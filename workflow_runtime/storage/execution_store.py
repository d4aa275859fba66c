"""In-memory registry of live and recent executions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.config import settings

if TYPE_CHECKING:
    from ..engine.types import ExecutionState


class ExecutionStore:
    """
    Holds ExecutionState objects by id.

    The runner mutates the stored state in place while it steps, so the
    store always reflects the latest status. Only terminal executions
    are evicted once the store grows past `max_records`.
    """

    def __init__(self, max_records: int = 500) -> None:
        self._executions: dict[str, ExecutionState] = {}
        self._max_records = max_records

    def save(self, state: ExecutionState) -> ExecutionState:
        self._executions[state.execution_id] = state
        self._cleanup()
        return state

    def get(self, execution_id: str) -> ExecutionState | None:
        """Get an execution by ID."""
        return self._executions.get(execution_id)

    def list(
        self,
        workflow_id: str | None = None,
        status: str | None = None,
    ) -> list[ExecutionState]:
        """List executions, newest first, optionally filtered."""
        states = list(self._executions.values())

        if workflow_id:
            states = [s for s in states if s.workflow_id == workflow_id]
        if status:
            states = [s for s in states if s.status.value == status]

        states.sort(key=lambda s: s.created_at, reverse=True)
        return states

    def delete(self, execution_id: str) -> bool:
        """Delete an execution."""
        if execution_id in self._executions:
            del self._executions[execution_id]
            return True
        return False

    def clear(self) -> None:
        self._executions.clear()

    def _cleanup(self) -> None:
        """Remove the oldest finished executions if over max."""
        excess = len(self._executions) - self._max_records
        if excess <= 0:
            return
        finished = sorted(
            (s for s in self._executions.values() if s.status.is_terminal),
            key=lambda s: s.updated_at,
        )
        for state in finished[:excess]:
            del self._executions[state.execution_id]


# Singleton instance
execution_store = ExecutionStore(max_records=settings.max_execution_records)
