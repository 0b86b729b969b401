"""Tests for the engine factory (easybills/core/database.py)."""

from __future__ import annotations

from easybills.core.config import Settings
from easybills.core.database import Base, create_engine


def test_engine_uses_asyncpg_url_and_pool_settings() -> None:
    settings = Settings(postgres_host="db.internal", postgres_db="claims", db_pool_size=3, db_max_overflow=1)

    engine, session_factory = create_engine(settings)

    assert engine.url.drivername == "postgresql+asyncpg"
    assert engine.url.host == "db.internal"
    assert engine.url.database == "claims"
    assert engine.pool.size() == 3
    assert session_factory.kw["expire_on_commit"] is False


def test_metadata_has_claim_tables() -> None:
    import easybills.core.models  # noqa: F401

    assert {"users", "expense_claims"} <= set(Base.metadata.tables)
