"""Database initialization shared by tasks."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from referral_engine.config.database import create_engine, create_session_maker


def create_task_engine() -> AsyncEngine:
    """Create an engine for use inside a task."""
    return create_engine(echo=False, poolclass=NullPool)


def create_task_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create a session maker for tasks."""
    if engine is None:
        engine = create_task_engine()
    return create_session_maker(engine)


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    """
    Open a session on an engine owned by the current event loop.

    Each actor call runs its own asyncio.run loop, so the engine is created
    and disposed per call.

    Yields:
        Async database session
    """
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            yield session
    finally:
        await engine.dispose()
