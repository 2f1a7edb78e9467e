"""FastAPI dependency injection providers."""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from palbase.db.session import async_session_factory
from palbase.scrapers.sync_service import SyncService
from palbase.services.repository import PetRepository

_sync_service: Optional[SyncService] = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_repository(db: AsyncSession = Depends(get_db)) -> PetRepository:
    return PetRepository(db)


def get_sync_service() -> SyncService:
    """Process-wide SyncService shared by the API, the scheduler and shutdown."""
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService(async_session_factory)
    return _sync_service
