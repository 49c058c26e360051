"""
Milestone models.

VIP milestone definitions and the one-time claims that guard them.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base
from referral_engine.models.types import MoneyType


class MilestoneDefinition(Base):
    """
    MilestoneDefinition entity.

    Attributes:
        id: Primary key
        vip_count_threshold: Direct VIP referrals needed
        reward_inr_value: Reward, paid as the same amount of BSK
        reward_description: Human readable description
        is_active: Inactive milestones are never evaluated
    """

    __tablename__ = "milestone_definitions"
    __table_args__ = (
        CheckConstraint(
            "vip_count_threshold >= 1",
            name="check_milestone_definitions_threshold_positive",
        ),
        CheckConstraint(
            "reward_inr_value >= 0",
            name="check_milestone_definitions_reward_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    vip_count_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    reward_inr_value: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    reward_description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MilestoneDefinition(id={self.id}, "
            f"threshold={self.vip_count_threshold}, "
            f"reward={self.reward_inr_value})>"
        )


class MilestoneClaim(Base):
    """
    MilestoneClaim entity.

    Presence of a row means the milestone was paid, regardless of the
    sponsor's current VIP count.
    """

    __tablename__ = "milestone_claims"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "milestone_id", name="uq_milestone_claims_user_milestone"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    milestone_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("milestone_definitions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    vip_count_at_claim: Mapped[int] = mapped_column(Integer, nullable=False)
    bsk_rewarded: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MilestoneClaim(user_id={self.user_id}, "
            f"milestone_id={self.milestone_id})>"
        )
