from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
import logging

from slotduel.models.schemas import Base


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Centralized session factory so services never build their own."""
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create table if not exists"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except IntegrityError as e:
        logging.warning(f"Table already exists or other integrity error: {e}")
