"""
Commission settings repository.

Data access layer for CommissionSettings and CommissionLevelRate models.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.commission_settings import (
    CommissionLevelRate,
    CommissionSettings,
)
from referral_engine.repositories.base import BaseRepository


class CommissionSettingsRepository(BaseRepository[CommissionSettings]):
    """Commission settings repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission settings repository."""
        super().__init__(CommissionSettings, session)

    async def get_current(self) -> CommissionSettings | None:
        """
        Get the authoritative settings row.

        Returns:
            Most recently updated settings or None if never configured
        """
        stmt = (
            select(CommissionSettings)
            .order_by(
                CommissionSettings.updated_at.desc(),
                CommissionSettings.id.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_level_rates(self) -> dict[int, Decimal]:
        """
        Get the per-level rate table.

        Returns:
            Mapping of level to percent
        """
        stmt = select(CommissionLevelRate.level, CommissionLevelRate.percent)
        result = await self.session.execute(stmt)
        return {level: Decimal(percent) for level, percent in result.all()}
