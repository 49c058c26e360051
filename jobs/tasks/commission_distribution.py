"""
Commission distribution task.

Distributes multi-level commissions for an earning event reported by an
internal service. Retries are safe: payments are deduplicated per
(event_id, level, sponsor).
"""

import asyncio
import uuid
from typing import Any

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from jobs.broker import broker  # noqa: F401
from jobs.utils.database import task_session
from referral_engine.services.commission import (
    CommissionDistributionEngine,
    DistributionResult,
)
from referral_engine.utils.db_decorators import with_rollback_on_error


@dramatiq.actor(max_retries=3, time_limit=120_000)  # 2 min timeout
def distribute_commissions(
    earner_id: str,
    earning_amount: str,
    earning_type: str,
    metadata: dict[str, Any] | None = None,
    event_id: str | None = None,
) -> None:
    """
    Distribute commissions for one earning event.

    Args:
        earner_id: User who generated the event (UUID string)
        earning_amount: Event amount as a decimal string
        earning_type: Allow-listed earning type
        metadata: Context stored with ledger entries
        event_id: Event identity used for deduplication
    """
    logger.info(
        f"Starting commission distribution for event {event_id or '<derived>'}"
    )

    result = asyncio.run(
        _distribute_commissions_async(
            uuid.UUID(earner_id),
            earning_amount,
            earning_type,
            metadata,
            event_id,
        )
    )

    logger.info(
        f"Commission distribution complete: "
        f"{len(result.commissions)} level(s) paid, "
        f"{len(result.failed_levels)} failed, "
        f"total: {result.commissions_distributed} BSK"
    )


async def _distribute_commissions_async(
    earner_id: uuid.UUID,
    earning_amount: str,
    earning_type: str,
    metadata: dict[str, Any] | None,
    event_id: str | None,
) -> DistributionResult:
    """Async implementation of commission distribution."""
    async with task_session() as session:
        return await _distribute(
            session,
            earner_id=earner_id,
            earning_amount=earning_amount,
            earning_type=earning_type,
            metadata=metadata,
            event_id=event_id,
        )


@with_rollback_on_error
async def _distribute(
    session: AsyncSession,
    **event: Any,
) -> DistributionResult:
    engine = CommissionDistributionEngine(session)
    return await engine.distribute(**event)
