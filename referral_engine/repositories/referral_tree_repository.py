"""
Referral tree repository.

Data access layer for ReferralEdge model.
"""

import uuid

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.referral_tree import ReferralEdge
from referral_engine.repositories.base import BaseRepository


class ReferralTreeRepository(BaseRepository[ReferralEdge]):
    """Referral tree repository with upline and downline queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral tree repository."""
        super().__init__(ReferralEdge, session)

    async def get_ancestor_path(
        self, user_id: uuid.UUID, max_level: int | None = None
    ) -> list[ReferralEdge]:
        """
        Get the upline of a user.

        Args:
            user_id: User whose ancestors to load
            max_level: Optional deepest level to load

        Returns:
            Edges ordered by level ascending (level 1 = direct sponsor)
        """
        stmt = select(ReferralEdge).where(ReferralEdge.user_id == user_id)
        if max_level is not None:
            stmt = stmt.where(ReferralEdge.level <= max_level)
        stmt = stmt.order_by(ReferralEdge.level.asc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_level_one(self, user_id: uuid.UUID) -> ReferralEdge | None:
        """Get the direct sponsor edge of a user."""
        return await self.get_by(user_id=user_id, level=1)

    async def get_direct_referral_ids(
        self, ancestor_id: uuid.UUID
    ) -> list[uuid.UUID]:
        """
        Get users directly sponsored by ancestor.

        Args:
            ancestor_id: Sponsor user ID

        Returns:
            IDs of level 1 descendants
        """
        stmt = select(ReferralEdge.user_id).where(
            ReferralEdge.ancestor_id == ancestor_id,
            ReferralEdge.level == 1,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def replace_tree(
        self,
        user_id: uuid.UUID,
        ancestors: list[uuid.UUID],
    ) -> int:
        """
        Replace the full edge set of a user.

        Args:
            user_id: User whose tree is rebuilt
            ancestors: Ancestor IDs, index 0 being the direct sponsor

        Returns:
            Number of edges written
        """
        await self.session.execute(
            delete(ReferralEdge).where(ReferralEdge.user_id == user_id)
        )

        if not ancestors:
            await self.session.flush()
            return 0

        rows = []
        path: list[str] = []
        for index, ancestor_id in enumerate(ancestors):
            path = [*path, str(ancestor_id)]
            rows.append(
                {
                    "user_id": user_id,
                    "ancestor_id": ancestor_id,
                    "level": index + 1,
                    "path": path,
                }
            )

        await self.session.execute(insert(ReferralEdge), rows)
        await self.session.flush()
        return len(rows)
