"""Seed script: one Faculty member, one Accounts reviewer and a sample claim.

Sign in afterwards through ``POST /api/v1/auth/token`` with either email.

Usage:
    python -m scripts.seed_demo          # seed (idempotent)
    python -m scripts.seed_demo --reset  # wipe claims and users first

Requires: a bootstrapped or migrated PostgreSQL database.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from easybills.claims.store import ClaimStore
from easybills.core.config import get_settings
from easybills.core.database import create_engine
from easybills.core.models import ClaimCategory, ExpenseClaim, User, UserRole

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)

FACULTY_EMAIL = "faculty@easybills.local"
ACCOUNTS_EMAIL = "accounts@easybills.local"


async def _get_or_create_user(session: AsyncSession, email: str, name: str, role: UserRole) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email, name=name, role=role, is_active=True)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        logger.info("Created %s user %s", role.value, email)
    return user


async def main(reset: bool = False) -> None:
    engine, session_factory = create_engine(get_settings())

    async with session_factory() as session:
        if reset:
            await session.execute(delete(ExpenseClaim))
            await session.execute(delete(User))
            await session.commit()
            logger.info("Removed existing claims and users")

        faculty = await _get_or_create_user(session, FACULTY_EMAIL, "Demo Faculty", UserRole.FACULTY)
        await _get_or_create_user(session, ACCOUNTS_EMAIL, "Demo Accounts", UserRole.ACCOUNTS)

        store = ClaimStore(session)
        if not await store.find_all_by_owner(faculty.id):
            claim = await store.create(
                faculty.id,
                ClaimCategory.TRAVEL,
                "500.00",
                "Conference travel to the annual research symposium",
                date.today(),
            )
            logger.info("Created sample claim %s", claim.id)

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed EasyBills demo data")
    parser.add_argument("--reset", action="store_true", help="Wipe claims and users first")
    args = parser.parse_args()
    asyncio.run(main(reset=args.reset))
