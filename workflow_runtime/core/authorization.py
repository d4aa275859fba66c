"""Group-based access checks for workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import AuthorizationError

if TYPE_CHECKING:
    from ..engine.types import WorkflowDefinition

logger = logging.getLogger(__name__)

PUBLIC_GROUP = "*"


@dataclass
class Caller:
    """Identity of whoever starts or resumes an execution."""

    id: str | None = None
    groups: list[str] = field(default_factory=list)


class GroupAuthorizer:
    """Checks a caller's groups against a workflow's allowedGroups."""

    def is_allowed(self, definition: WorkflowDefinition, caller: Caller | None) -> bool:
        allowed = set(definition.allowed_groups)
        if not allowed or PUBLIC_GROUP in allowed:
            return True
        if caller is None:
            return False
        return bool(allowed.intersection(caller.groups))

    def authorize(self, definition: WorkflowDefinition, caller: Caller | None) -> None:
        """
        Raise AuthorizationError unless the caller may use the workflow.

        An empty allowedGroups list or one containing "*" makes the
        workflow public.
        """
        if not self.is_allowed(definition, caller):
            user_id = caller.id if caller else None
            logger.warning("Denied workflow %s for user %s", definition.id, user_id)
            raise AuthorizationError(definition.id, user_id)
