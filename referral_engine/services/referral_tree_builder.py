"""
Referral tree builder.

Materializes a user's ancestor path from locked sponsor links.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.config.settings import settings
from referral_engine.repositories.referral_tree_repository import (
    ReferralTreeRepository,
)
from referral_engine.repositories.sponsor_link_repository import (
    SponsorLinkRepository,
)
from referral_engine.services.base_service import BaseService


class ReferralTreeBuilder(BaseService):
    """
    Builds referral_tree rows for a user.

    The caller owns the transaction: rebuild_tree only flushes.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize tree builder."""
        super().__init__(session)
        self.tree_repo = ReferralTreeRepository(session)
        self.link_repo = SponsorLinkRepository(session)

    async def collect_ancestors(
        self, user_id: uuid.UUID, depth: int | None = None
    ) -> list[uuid.UUID]:
        """
        Walk locked sponsor links upward.

        Args:
            user_id: Starting user
            depth: Maximum ancestors to collect (default: settings.max_tree_depth)

        Returns:
            Ancestor IDs, index 0 being the direct sponsor
        """
        depth = depth or settings.max_tree_depth
        ancestors: list[uuid.UUID] = []
        seen = {user_id}
        current = user_id

        while len(ancestors) < depth:
            sponsor_id = await self.link_repo.get_locked_sponsor_id(current)
            if sponsor_id is None:
                break

            if sponsor_id in seen:
                self.logger.warning(
                    "Referral loop detected, truncating chain",
                    extra={
                        "user_id": str(user_id),
                        "loop_at": str(sponsor_id),
                        "chain_length": len(ancestors),
                    },
                )
                break

            ancestors.append(sponsor_id)
            seen.add(sponsor_id)
            current = sponsor_id

        return ancestors

    async def rebuild_tree(self, user_id: uuid.UUID) -> int:
        """
        Replace the referral tree of a user.

        Args:
            user_id: User whose tree to rebuild

        Returns:
            Number of levels written (0 for root users)
        """
        ancestors = await self.collect_ancestors(user_id)
        levels = await self.tree_repo.replace_tree(user_id, ancestors)

        self.logger.info(
            "Referral tree rebuilt",
            extra={
                "user_id": str(user_id),
                "levels_created": levels,
            },
        )
        return levels
