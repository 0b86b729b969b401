"""Bootstrap the database by creating all tables from SQLAlchemy metadata.

Useful for local development and throwaway databases; production schemas
are managed with Alembic. Stamps ``alembic_version`` so later
``alembic upgrade`` runs start from the current head.

Usage:
    python -m scripts.bootstrap_db
    python -m scripts.bootstrap_db --drop  # drop all tables first
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from sqlalchemy import text

from easybills.core.config import get_settings
from easybills.core.database import Base, create_engine
import easybills.core.models  # noqa: F401 - registers the ORM models with Base.metadata

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)

ALEMBIC_HEAD = "001"


async def main(drop: bool = False) -> None:
    engine, _ = create_engine(get_settings())

    async with engine.begin() as conn:
        if drop:
            logger.info("Dropping all tables...")
            await conn.run_sync(Base.metadata.drop_all)

        logger.info("Creating all tables from SQLAlchemy metadata...")
        await conn.run_sync(Base.metadata.create_all)

        await conn.execute(text("CREATE TABLE IF NOT EXISTS alembic_version (version_num VARCHAR(32) NOT NULL)"))
        await conn.execute(text("DELETE FROM alembic_version"))
        await conn.execute(text("INSERT INTO alembic_version (version_num) VALUES (:head)"), {"head": ALEMBIC_HEAD})

    await engine.dispose()
    logger.info("Database bootstrapped: %d tables, alembic stamped to %s", len(Base.metadata.tables), ALEMBIC_HEAD)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Bootstrap the EasyBills database")
    parser.add_argument("--drop", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(main(drop=args.drop))
