"""Checkpoint repository for database persistence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import CheckpointError
from ..db.models import CheckpointModel, utc_now
from ..storage.checkpoint_store import CheckpointGateway

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker

    from ..engine.types import ExecutionState

logger = logging.getLogger(__name__)


class CheckpointRepository(CheckpointGateway):
    """Checkpoint gateway backed by SQLModel and an async session factory."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def save(self, execution_id: str, state: ExecutionState) -> None:
        try:
            async with self._session_factory() as session:
                db_checkpoint = await session.get(CheckpointModel, execution_id)
                if db_checkpoint is None:
                    db_checkpoint = CheckpointModel(
                        execution_id=execution_id,
                        workflow_id=state.workflow_id,
                        status=state.status.value,
                        state=state.to_dict(),
                    )
                else:
                    db_checkpoint.status = state.status.value
                    db_checkpoint.state = state.to_dict()
                    db_checkpoint.updated_at = utc_now()
                session.add(db_checkpoint)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to save checkpoint %s: %s", execution_id, e)
            raise CheckpointError(f"Failed to save checkpoint: {e}", execution_id) from e

    async def load(self, execution_id: str) -> ExecutionState | None:
        from ..engine.types import ExecutionState

        try:
            async with self._session_factory() as session:
                db_checkpoint = await session.get(CheckpointModel, execution_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load checkpoint %s: %s", execution_id, e)
            raise CheckpointError(f"Failed to load checkpoint: {e}", execution_id) from e

        if db_checkpoint is None:
            return None
        return ExecutionState.from_dict(db_checkpoint.state)

    async def delete(self, execution_id: str) -> None:
        try:
            async with self._session_factory() as session:
                db_checkpoint = await session.get(CheckpointModel, execution_id)
                if db_checkpoint is not None:
                    await session.delete(db_checkpoint)
                    await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to delete checkpoint %s: %s", execution_id, e)
            raise CheckpointError(f"Failed to delete checkpoint: {e}", execution_id) from e
