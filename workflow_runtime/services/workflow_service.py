"""Workflow service for business logic."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.exceptions import DefinitionError, WorkflowNotFoundError
from ..engine.types import WorkflowDefinition
from ..schemas.workflow import (
    ValidationResponse,
    WorkflowDefinitionSchema,
    WorkflowDetailResponse,
    WorkflowListItem,
)

if TYPE_CHECKING:
    from ..engine.validator import DefinitionValidator
    from ..storage.workflow_store import StoredWorkflow, WorkflowStore

logger = logging.getLogger(__name__)


class WorkflowService:
    """Service for workflow operations."""

    def __init__(self, workflow_store: WorkflowStore, validator: DefinitionValidator) -> None:
        self._workflow_store = workflow_store
        self._validator = validator

    def list_workflows(self) -> list[WorkflowListItem]:
        """List all workflows."""
        return [
            WorkflowListItem(
                id=w.id,
                name=w.definition.name,
                version=w.definition.version,
                enabled=w.definition.enabled,
                node_count=len(w.definition.nodes),
                allowed_groups=w.definition.allowed_groups,
                created_at=w.created_at.isoformat(),
                updated_at=w.updated_at.isoformat(),
            )
            for w in self._workflow_store.list()
        ]

    def get_workflow(self, workflow_id: str) -> WorkflowDetailResponse:
        """Get a workflow by ID."""
        stored = self._workflow_store.get(workflow_id)
        if not stored:
            raise WorkflowNotFoundError(workflow_id)
        return self._to_detail(stored)

    def create_workflow(self, request: WorkflowDefinitionSchema) -> WorkflowDetailResponse:
        """
        Validate and store a definition.

        A definition with an existing id replaces the stored one.

        Raises:
            DefinitionError: If the definition has structural errors
        """
        definition = request.to_definition()
        stored, warnings = self.register(definition)
        return self._to_detail(stored, warnings)

    def register(self, definition: WorkflowDefinition) -> tuple[StoredWorkflow, list[str]]:
        """Validate an engine definition and store it."""
        if not definition.id:
            definition = replace(definition, id=self._workflow_store.generate_id())
        result = self._validator.validate(definition)
        stored = self._workflow_store.save(definition)
        logger.info("Registered workflow %s", stored.id)
        return stored, result.warnings

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        if not self._workflow_store.delete(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        return True

    def validate_workflow(self, request: WorkflowDefinitionSchema) -> ValidationResponse:
        """Check a definition without storing it."""
        definition = request.to_definition()
        if not definition.id:
            definition = replace(definition, id="unsaved")
        result = self._validator.check(definition)
        return ValidationResponse(
            valid=result.is_valid,
            errors=result.errors,
            warnings=result.warnings,
        )

    def load_directory(self, path: str | Path) -> list[str]:
        """
        Register every *.json definition in a directory.

        Invalid files are logged and skipped so that one bad definition
        does not keep the server from starting.
        """
        directory = Path(path)
        if not directory.is_dir():
            logger.warning("Workflow directory not found: %s", directory)
            return []

        loaded = []
        for file in sorted(directory.glob("*.json")):
            try:
                raw: Any = json.loads(file.read_text(encoding="utf-8"))
                definition = WorkflowDefinition.from_dict(raw)
                stored, _ = self.register(definition)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error("Could not read workflow file %s: %s", file, e)
                continue
            except DefinitionError as e:
                logger.error("Invalid workflow file %s: %s", file, "; ".join(e.errors))
                continue
            loaded.append(stored.id)

        logger.info("Loaded %d workflow(s) from %s", len(loaded), directory)
        return loaded

    @staticmethod
    def _to_detail(stored: StoredWorkflow, warnings: list[str] | None = None) -> WorkflowDetailResponse:
        return WorkflowDetailResponse(
            id=stored.id,
            name=stored.definition.name,
            enabled=stored.definition.enabled,
            definition=stored.definition.to_dict(),
            warnings=warnings or [],
            created_at=stored.created_at.isoformat(),
            updated_at=stored.updated_at.isoformat(),
        )
