"""
Referral audit task.

Scheduled consistency check of referral trees, balances and the
commission ledger. Only one audit runs at a time.
"""

import asyncio

import dramatiq
import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError
from sqlalchemy.ext.asyncio import AsyncSession

from jobs.broker import broker  # noqa: F401
from jobs.utils.database import task_session
from referral_engine.config.settings import settings
from referral_engine.services.referral_audit import (
    AuditReport,
    ReferralAuditService,
)
from referral_engine.utils.db_decorators import with_rollback_on_error


AUDIT_LOCK_KEY = "referral_audit_processing"
AUDIT_LOCK_TIMEOUT = 600  # seconds


@dramatiq.actor(max_retries=1, time_limit=900_000)  # 15 min timeout
def run_referral_audit(auto_fix: bool = True) -> None:
    """
    Run the referral audit.

    Args:
        auto_fix: Rebuild missing referral trees
    """
    logger.info("Starting referral audit...")

    report = asyncio.run(_run_referral_audit_async(auto_fix))
    if report is None:
        logger.info("Referral audit already running, skipped")
        return

    if report.issues_by_severity.get("critical"):
        logger.warning(
            f"Referral audit found {report.issues_by_severity['critical']} "
            f"critical issue(s), {report.auto_fixed} auto-fixed"
        )
    else:
        logger.info(
            f"Referral audit complete: {report.total_issues} issue(s), "
            f"{report.auto_fixed} auto-fixed"
        )


async def _run_referral_audit_async(auto_fix: bool) -> AuditReport | None:
    """Async implementation of the audit, guarded by a Redis lock."""
    redis_client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )
    lock = redis_client.lock(AUDIT_LOCK_KEY, timeout=AUDIT_LOCK_TIMEOUT)

    try:
        if not await lock.acquire(blocking=False):
            return None

        try:
            async with task_session() as session:
                return await _run_audit(session, auto_fix)
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Referral audit lock expired before release")
    finally:
        await redis_client.aclose()


@with_rollback_on_error
async def _run_audit(session: AsyncSession, auto_fix: bool) -> AuditReport:
    service = ReferralAuditService(session)
    return await service.run(auto_fix=auto_fix)
