"""
Sponsor link repository.

Data access layer for SponsorLink model.
"""

import uuid

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.referral_tree import ReferralEdge, SponsorLink
from referral_engine.repositories.base import BaseRepository


class SponsorLinkRepository(BaseRepository[SponsorLink]):
    """Sponsor link repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize sponsor link repository."""
        super().__init__(SponsorLink, session)

    async def get_locked_sponsor_id(
        self, user_id: uuid.UUID
    ) -> uuid.UUID | None:
        """
        Get the locked direct sponsor of a user.

        Args:
            user_id: User ID

        Returns:
            Sponsor ID or None if no locked link exists
        """
        link = await self.get_by_id(user_id)
        if link is None or not link.is_locked:
            return None
        return link.sponsor_id

    async def find_locked(self) -> list[SponsorLink]:
        """Get every locked sponsor link."""
        stmt = select(SponsorLink).where(
            SponsorLink.sponsor_id.is_not(None),
            SponsorLink.locked_at.is_not(None),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_locked_without_tree(self) -> list[SponsorLink]:
        """Get locked links whose user has no referral tree rows."""
        has_edges = exists().where(ReferralEdge.user_id == SponsorLink.user_id)
        stmt = select(SponsorLink).where(
            SponsorLink.sponsor_id.is_not(None),
            SponsorLink.locked_at.is_not(None),
            ~has_edges,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
