"""SQLModel database models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Column, Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckpointModel(SQLModel, table=True):
    """Serialized execution state saved by the checkpoint gateway."""

    __tablename__ = "checkpoints"

    execution_id: str = Field(primary_key=True)
    workflow_id: str = Field(index=True)
    status: str = Field(index=True)  # waiting_human, completed, failed, cancelled

    # Full ExecutionState.to_dict() snapshot
    state: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # Timezone-aware UTC
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
