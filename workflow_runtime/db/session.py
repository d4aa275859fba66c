"""Database session management."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from ..core.config import settings

DATABASE_URL = settings.database_url or "sqlite+aiosqlite:///./workflow_runtime.db"


def create_engine(url: str = DATABASE_URL) -> AsyncEngine:
    return create_async_engine(url, echo=settings.debug, future=True)


def create_session_factory(db_engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()

async_session_factory = create_session_factory(engine)


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
