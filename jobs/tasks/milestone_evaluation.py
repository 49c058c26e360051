"""
VIP milestone evaluation task.

Runs after a badge purchase of a referred user and pays the sponsor's
newly crossed VIP milestones.
"""

import asyncio
import uuid

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from jobs.broker import broker  # noqa: F401
from jobs.utils.database import task_session
from referral_engine.services.milestone import MilestoneEngine, MilestoneResult
from referral_engine.utils.db_decorators import with_rollback_on_error


@dramatiq.actor(max_retries=3, time_limit=60_000)  # 1 min timeout
def evaluate_vip_milestones(
    sponsor_id: str,
    trigger_referral_id: str | None = None,
) -> None:
    """
    Evaluate VIP milestones of a sponsor.

    Args:
        sponsor_id: Sponsor to evaluate (UUID string)
        trigger_referral_id: Referral whose purchase triggered the run
    """
    logger.info(f"Evaluating VIP milestones for sponsor {sponsor_id}")

    result = asyncio.run(
        _evaluate_vip_milestones_async(
            uuid.UUID(sponsor_id),
            uuid.UUID(trigger_referral_id) if trigger_referral_id else None,
        )
    )

    if result.milestones_achieved:
        logger.info(
            f"{len(result.milestones_achieved)} milestone(s) achieved for "
            f"sponsor {sponsor_id}, total: {result.total_rewarded} BSK"
        )
    else:
        logger.info(
            f"No new milestones for sponsor {sponsor_id} "
            f"(VIP referrals: {result.current_vip_count})"
        )


async def _evaluate_vip_milestones_async(
    sponsor_id: uuid.UUID,
    trigger_referral_id: uuid.UUID | None,
) -> MilestoneResult:
    """Async implementation of milestone evaluation."""
    async with task_session() as session:
        return await _evaluate(session, sponsor_id, trigger_referral_id)


@with_rollback_on_error
async def _evaluate(
    session: AsyncSession,
    sponsor_id: uuid.UUID,
    trigger_referral_id: uuid.UUID | None,
) -> MilestoneResult:
    engine = MilestoneEngine(session)
    return await engine.evaluate_milestones(sponsor_id, trigger_referral_id)
