"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings; must be set before package imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("REDIS_HOST", "localhost")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from referral_engine.models import (
    BadgeHolding,
    BadgeThreshold,
    Base,
    CommissionLevelRate,
    CommissionSettings,
    MilestoneDefinition,
    ReferralEdge,
    SponsorLink,
)


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    return session


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine with working SAVEPOINTs.

    pysqlite's own transaction handling breaks SAVEPOINT, so BEGIN is
    emitted explicitly.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine):
    """Async session bound to the in-memory database."""
    session_maker = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def user_ids():
    """Factory of fresh user IDs."""
    def _make(count: int) -> list[uuid.UUID]:
        return [uuid.uuid4() for _ in range(count)]
    return _make


@pytest.fixture
def link_chain(session):
    """
    Record locked sponsor links along a chain.

    chain[0] is the earner, chain[i] sponsors chain[i - 1].
    """
    async def _link(chain: list[uuid.UUID]) -> None:
        locked_at = datetime.now(UTC)
        for user_id, sponsor_id in zip(chain, chain[1:]):
            session.add(
                SponsorLink(
                    user_id=user_id,
                    sponsor_id=sponsor_id,
                    locked_at=locked_at,
                )
            )
        session.add(SponsorLink(user_id=chain[-1], sponsor_id=None))
        await session.commit()
    return _link


@pytest.fixture
def build_tree(session):
    """Write referral_tree rows for the earner of a chain."""
    async def _build(chain: list[uuid.UUID]) -> None:
        earner, ancestors = chain[0], chain[1:]
        path: list[str] = []
        for level, ancestor_id in enumerate(ancestors, start=1):
            path = [*path, str(ancestor_id)]
            session.add(
                ReferralEdge(
                    user_id=earner,
                    ancestor_id=ancestor_id,
                    level=level,
                    path=path,
                )
            )
        await session.commit()
    return _build


@pytest.fixture
def give_badge(session):
    """Record a badge purchase; later purchases become the current badge."""
    base_time = datetime(2026, 1, 1, tzinfo=UTC)
    counter = {"n": 0}

    async def _give(user_id: uuid.UUID, badge: str) -> None:
        counter["n"] += 1
        session.add(
            BadgeHolding(
                user_id=user_id,
                current_badge=badge,
                purchased_at=base_time + timedelta(minutes=counter["n"]),
            )
        )
        await session.commit()
    return _give


@pytest.fixture
def set_threshold(session):
    """Configure unlock levels of a badge."""
    async def _set(badge: str, unlock_levels: int, is_active: bool = True) -> None:
        session.add(
            BadgeThreshold(
                badge_name=badge,
                unlock_levels=unlock_levels,
                is_active=is_active,
            )
        )
        await session.commit()
    return _set


@pytest.fixture
def configure_commissions(session):
    """Store commission settings and per-level rates."""
    async def _configure(
        rates: dict[int, str],
        max_levels: int = 50,
        is_active: bool = True,
        cap: str | None = None,
        vip_multiplier: str = "1",
    ) -> None:
        session.add(
            CommissionSettings(
                is_active=is_active,
                max_levels=max_levels,
                cap_usd=Decimal(cap) if cap is not None else None,
                vip_multiplier=Decimal(vip_multiplier),
            )
        )
        for level, percent in rates.items():
            session.add(CommissionLevelRate(level=level, percent=Decimal(percent)))
        await session.commit()
    return _configure


@pytest.fixture
def add_milestones(session):
    """Create active milestone definitions from (threshold, reward) pairs."""
    async def _add(*milestones: tuple[int, str]) -> list[MilestoneDefinition]:
        definitions = [
            MilestoneDefinition(
                vip_count_threshold=threshold,
                reward_inr_value=Decimal(reward),
                reward_description=f"{threshold} VIP referrals",
            )
            for threshold, reward in milestones
        ]
        session.add_all(definitions)
        await session.commit()
        return definitions
    return _add
