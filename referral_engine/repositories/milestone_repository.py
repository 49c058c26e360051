"""
Milestone repository.

Data access layer for MilestoneDefinition and MilestoneClaim models.
"""

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.milestone import MilestoneClaim, MilestoneDefinition
from referral_engine.repositories.base import BaseRepository


class MilestoneRepository(BaseRepository[MilestoneClaim]):
    """Milestone repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize milestone repository."""
        super().__init__(MilestoneClaim, session)

    async def get_active_definitions(self) -> list[MilestoneDefinition]:
        """
        Get active milestone definitions.

        Returns:
            Definitions ordered by threshold ascending
        """
        stmt = (
            select(MilestoneDefinition)
            .where(MilestoneDefinition.is_active.is_(True))
            .order_by(
                MilestoneDefinition.vip_count_threshold.asc(),
                MilestoneDefinition.id.asc(),
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_claim(self, user_id: uuid.UUID, milestone_id: int) -> bool:
        """Check whether the milestone was already paid to user."""
        return await self.exists(user_id=user_id, milestone_id=milestone_id)

    async def create_claim(
        self,
        user_id: uuid.UUID,
        milestone_id: int,
        vip_count: int,
        reward: Decimal,
    ) -> MilestoneClaim:
        """
        Insert the claim guarding a milestone.

        Raises:
            IntegrityError: If the claim already exists
        """
        return await self.create(
            user_id=user_id,
            milestone_id=milestone_id,
            vip_count_at_claim=vip_count,
            bsk_rewarded=reward,
        )

    async def get_claims(self, user_id: uuid.UUID) -> list[MilestoneClaim]:
        """Get every claim of a user."""
        return await self.find_by(user_id=user_id)
