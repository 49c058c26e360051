"""
Database configuration.

Async SQLAlchemy engine and session factory helpers.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from referral_engine.config.settings import settings


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """
    Create async engine.

    Args:
        url: Database URL (defaults to settings.database_url)
        **kwargs: Extra engine options

    Returns:
        Async engine
    """
    kwargs.setdefault("echo", settings.database_echo)
    return create_async_engine(url or settings.database_url, **kwargs)


def create_session_maker(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create session maker bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
