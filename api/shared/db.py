"""Shared database helpers for feature services."""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# all tables mapped before the first session opens
import api.shared.entities.registry  # noqa: F401
from infra.resources import DatabaseResource


@asynccontextmanager
async def session_scope(db: DatabaseResource) -> AsyncIterator[AsyncSession]:
    """One unit of work: commit on success, roll back on error, always close."""
    session = db.get_session()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def ping(db: DatabaseResource) -> bool:
    async with session_scope(db) as session:
        await session.execute(text("SELECT 1"))
    return True
