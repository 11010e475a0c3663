"""
Session factory and schema helpers for the meeting report tables.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from db.engine import engine
from exceptions import DatabaseError
from logging_config import get_logger
from models import Base

logger = get_logger(__name__)

# Instances stay readable after commit; the sync job commits once per meeting
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for one CLI run or console request.

    Errors raised inside the block roll back and propagate unchanged.
    A failing final commit is rolled back and raised as DatabaseError.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("db_commit_failed", error=str(e))
            raise DatabaseError(f"Could not commit session: {e}") from e


async def create_tables(bind: AsyncEngine = None) -> List[str]:
    """Create missing tables; returns the names of all tables in dependency order."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return [table.name for table in Base.metadata.sorted_tables]


async def drop_tables(bind: AsyncEngine = None) -> None:
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
