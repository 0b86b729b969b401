"""Async database engine and ORM base.

``create_engine`` returns the engine plus the session factory the API
stores on ``app.state.db_session_factory``; scripts use the same pair.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from easybills.core.config import Settings


class Base(DeclarativeBase):
    """Declarative base for ``users`` and ``expense_claims``."""


def create_engine(settings: Settings) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build the asyncpg engine and its session factory.

    Sessions keep attribute values after commit so a claim can still be
    serialized and fanned out once its transaction has ended.
    """
    engine = create_async_engine(
        settings.database_url or "",
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
    )
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory
