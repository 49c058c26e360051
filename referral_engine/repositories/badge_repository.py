"""
Badge repository.

Data access layer for BadgeHolding and BadgeThreshold models.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.badge import BadgeHolding, BadgeThreshold
from referral_engine.repositories.base import BaseRepository


class BadgeRepository(BaseRepository[BadgeHolding]):
    """Badge repository with current-badge lookups."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize badge repository."""
        super().__init__(BadgeHolding, session)

    async def get_current_badge(self, user_id: uuid.UUID) -> str | None:
        """
        Get the most recently purchased badge of a user.

        Args:
            user_id: User ID

        Returns:
            Raw badge name or None if the user never bought one
        """
        stmt = (
            select(BadgeHolding.current_badge)
            .where(BadgeHolding.user_id == user_id)
            .order_by(
                BadgeHolding.purchased_at.desc(),
                BadgeHolding.id.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_current_badges(
        self, user_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, str]:
        """
        Get current badges for many users in one query.

        Args:
            user_ids: User IDs

        Returns:
            Mapping of user ID to raw badge name (users without badge omitted)
        """
        if not user_ids:
            return {}

        stmt = (
            select(BadgeHolding.user_id, BadgeHolding.current_badge)
            .where(BadgeHolding.user_id.in_(user_ids))
            .order_by(
                BadgeHolding.purchased_at.asc(),
                BadgeHolding.id.asc(),
            )
        )
        result = await self.session.execute(stmt)

        # Later rows win: ordered oldest first
        badges: dict[uuid.UUID, str] = {}
        for user_id, badge in result.all():
            badges[user_id] = badge
        return badges

    async def get_active_thresholds(self) -> list[BadgeThreshold]:
        """
        Get all active threshold rows, oldest edit first.

        Returns:
            Active thresholds with names as stored by admins
        """
        stmt = (
            select(BadgeThreshold)
            .where(BadgeThreshold.is_active.is_(True))
            .order_by(BadgeThreshold.updated_at.asc(), BadgeThreshold.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
