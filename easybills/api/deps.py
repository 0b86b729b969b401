"""Shared FastAPI dependencies.

Provides the database session dependency and builds the claim services
from the collaborators the application stores on ``app.state`` at
start-up (notifier, storage backend).
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from easybills.claims.documents import DocumentAttachmentManager
from easybills.claims.notifier import ClaimNotifier
from easybills.claims.store import ClaimStore
from easybills.claims.workflow import StatusTransitionEngine
from easybills.core.config import Settings, get_settings
from easybills.storage.backend import StorageBackend


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state via FastAPI dependency injection.

    The session is scoped to the request lifecycle.
    """
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_claim_store(session: AsyncSession = Depends(get_session)) -> ClaimStore:
    return ClaimStore(session)


def get_notifier(request: Request) -> ClaimNotifier:
    return request.app.state.claim_notifier


def get_storage(request: Request) -> StorageBackend:
    return request.app.state.storage


def get_transition_engine(
    background_tasks: BackgroundTasks,
    store: ClaimStore = Depends(get_claim_store),
    notifier: ClaimNotifier = Depends(get_notifier),
) -> StatusTransitionEngine:
    """Engine whose email/realtime fan-out runs after the response is sent."""
    return StatusTransitionEngine(store, notifier, defer=background_tasks.add_task)


def get_document_manager(
    background_tasks: BackgroundTasks,
    store: ClaimStore = Depends(get_claim_store),
    storage: StorageBackend = Depends(get_storage),
    notifier: ClaimNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> DocumentAttachmentManager:
    return DocumentAttachmentManager(
        store,
        storage,
        notifier,
        max_upload_bytes=settings.max_upload_bytes,
        defer=background_tasks.add_task,
    )
