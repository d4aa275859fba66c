"""In-memory workflow definition storage."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..engine.types import WorkflowDefinition


@dataclass
class StoredWorkflow:
    """A registered workflow definition with bookkeeping timestamps."""

    definition: WorkflowDefinition
    created_at: datetime
    updated_at: datetime

    @property
    def id(self) -> str:
        return self.definition.id


class WorkflowStore:
    """In-memory workflow storage."""

    def __init__(self) -> None:
        self._workflows: dict[str, StoredWorkflow] = {}

    def save(self, definition: WorkflowDefinition) -> StoredWorkflow:
        """Store a definition, replacing any previous version with the same id."""
        if not definition.id:
            definition = replace(definition, id=self.generate_id())

        now = datetime.now()
        existing = self._workflows.get(definition.id)
        stored = StoredWorkflow(
            definition=definition,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._workflows[definition.id] = stored
        return stored

    def get(self, workflow_id: str) -> StoredWorkflow | None:
        """Get a workflow by ID."""
        return self._workflows.get(workflow_id)

    def list(self) -> list[StoredWorkflow]:
        """List all workflows."""
        return list(self._workflows.values())

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        if workflow_id in self._workflows:
            del self._workflows[workflow_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all workflows."""
        self._workflows.clear()

    def generate_id(self) -> str:
        """Generate a unique workflow ID."""
        return f"wf_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


# Singleton instance
workflow_store = WorkflowStore()
