"""
Commission configuration models.

Global commission settings and the per-level rate table.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base
from referral_engine.models.types import (
    MoneyType,
    MultiplierType,
    RatePercentType,
)


class CommissionSettings(Base):
    """
    CommissionSettings entity.

    Admin-controlled switches for the distribution engine. The most recently
    updated row is authoritative.

    Attributes:
        id: Primary key
        is_active: Engine is a no-op while False
        max_levels: Deepest level ever paid (1-50)
        cap_usd: Per-level payout cap (None = uncapped)
        vip_multiplier: Payout multiplier for VIP sponsors
        updated_at: Last admin edit
    """

    __tablename__ = "commission_settings"
    __table_args__ = (
        CheckConstraint(
            "max_levels >= 1 AND max_levels <= 50",
            name="check_commission_settings_max_levels_range",
        ),
        CheckConstraint(
            "vip_multiplier > 0",
            name="check_commission_settings_vip_multiplier_positive",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    max_levels: Mapped[int] = mapped_column(
        Integer, default=50, nullable=False
    )
    cap_usd: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    vip_multiplier: Mapped[Decimal] = mapped_column(
        MultiplierType, default=Decimal("1"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionSettings(id={self.id}, active={self.is_active}, "
            f"max_levels={self.max_levels})>"
        )


class CommissionLevelRate(Base):
    """
    CommissionLevelRate entity.

    Percent of the earning amount paid at a level. Percent 0 means no payout
    is configured for the level, which is distinct from a level locked by
    badge.
    """

    __tablename__ = "commission_level_rates"
    __table_args__ = (
        CheckConstraint(
            "level >= 1 AND level <= 50",
            name="check_commission_level_rates_level_range",
        ),
        CheckConstraint(
            "percent >= 0",
            name="check_commission_level_rates_percent_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    percent: Mapped[Decimal] = mapped_column(
        RatePercentType, default=Decimal("0"), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<CommissionLevelRate(level={self.level}, percent={self.percent})>"
