"""
Integration tests for Dramatiq task bodies.

Actors open their own NullPool engine; here the async bodies run against
the test session instead.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobs.broker import should_retry
from jobs.tasks import commission_distribution, milestone_evaluation
from jobs.tasks import referral_audit as referral_audit_task
from referral_engine.utils.exceptions import (
    InvalidEarningEventError,
    LedgerUnavailableError,
    UntrustedEarningSourceError,
)


@pytest.fixture
def task_session(monkeypatch, session):
    """Route task sessions to the test database."""
    @asynccontextmanager
    async def _task_session():
        yield session

    for module in (commission_distribution, milestone_evaluation, referral_audit_task):
        monkeypatch.setattr(module, "task_session", _task_session)
    return session


class TestRetryPolicy:
    """Test broker retry decision."""

    def test_store_outage_retried(self):
        """Test that transient store failures are retried."""
        assert should_retry(0, LedgerUnavailableError("down")) is True

    def test_retries_exhausted(self):
        """Test that retries stop after the limit."""
        assert should_retry(3, LedgerUnavailableError("down")) is False

    @pytest.mark.parametrize(
        "exc",
        [InvalidEarningEventError("bad"), UntrustedEarningSourceError("bad")],
    )
    def test_validation_errors_not_retried(self, exc):
        """Test that rejected events are never retried."""
        assert should_retry(0, exc) is False


class TestCommissionTask:
    """Test commission distribution task body."""

    @pytest.mark.asyncio
    async def test_distributes_with_event_id(
        self, task_session, user_ids, build_tree, give_badge, configure_commissions
    ):
        """Test that the task distributes and deduplicates by event id."""
        earner, sponsor = user_ids(2)
        await build_tree([earner, sponsor])
        await give_badge(sponsor, "Bronze")
        await configure_commissions({1: "10"})

        first = await commission_distribution._distribute_commissions_async(
            earner, "250", "badge_upgrade", {"source": "test"}, "job-evt"
        )
        second = await commission_distribution._distribute_commissions_async(
            earner, "250", "badge_upgrade", {"source": "test"}, "job-evt"
        )

        assert first.commissions_distributed == Decimal("25")
        assert second.commissions_distributed == Decimal("0")


class TestMilestoneTask:
    """Test milestone evaluation task body."""

    @pytest.mark.asyncio
    async def test_evaluates_sponsor(
        self, task_session, user_ids, build_tree, give_badge, add_milestones
    ):
        """Test that the task pays a crossed milestone."""
        sponsor, referral = user_ids(2)
        await give_badge(sponsor, "VIP")
        await build_tree([referral, sponsor])
        await give_badge(referral, "VIP")
        await add_milestones((1, "40"))

        result = await milestone_evaluation._evaluate_vip_milestones_async(
            sponsor, referral
        )

        assert result.total_rewarded == Decimal("40")


class TestAuditTask:
    """Test audit task body and its lock."""

    @pytest.fixture
    def redis_lock(self, monkeypatch):
        """Mock Redis client whose lock acquisition is controllable."""
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock()
        client = MagicMock()
        client.lock = MagicMock(return_value=lock)
        client.aclose = AsyncMock()
        monkeypatch.setattr(
            referral_audit_task.redis, "Redis", MagicMock(return_value=client)
        )
        return lock

    @pytest.mark.asyncio
    async def test_runs_under_lock(self, task_session, redis_lock):
        """Test that the audit runs and releases the lock."""
        report = await referral_audit_task._run_referral_audit_async(auto_fix=True)

        assert report.total_issues == 0
        redis_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skipped_when_locked(self, task_session, redis_lock):
        """Test that a concurrent audit is skipped."""
        redis_lock.acquire.return_value = False

        report = await referral_audit_task._run_referral_audit_async(auto_fix=True)

        assert report is None
        redis_lock.release.assert_not_called()


class TestTaskDatabase:
    """Test per-task engine helpers."""

    @pytest.mark.asyncio
    async def test_task_engine_uses_null_pool(self):
        """Test that task engines never keep pooled connections."""
        from sqlalchemy.pool import NullPool

        from jobs.utils.database import create_task_engine, create_task_session_maker

        engine = create_task_engine()
        try:
            assert isinstance(engine.sync_engine.pool, NullPool)
            assert engine.echo is False
            session_maker = create_task_session_maker(engine)
            assert session_maker.kw["expire_on_commit"] is False
        finally:
            await engine.dispose()
