"""
Badge models.

Badge holdings per user and the admin-edited unlock-level thresholds.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base


class BadgeHolding(Base):
    """
    BadgeHolding entity.

    Written by the badge purchase flow. The current badge of a user is the
    most recent row by purchased_at.
    """

    __tablename__ = "badge_holdings"
    __table_args__ = (
        Index("idx_badge_holdings_user_purchased", "user_id", "purchased_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    current_badge: Mapped[str] = mapped_column(String(64), nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BadgeHolding(user_id={self.user_id}, "
            f"badge={self.current_badge})>"
        )


class BadgeThreshold(Base):
    """
    BadgeThreshold entity.

    Maps a badge name to the number of commission levels it
    unlocks.

    Attributes:
        id: Primary key
        badge_name: Badge name as entered by admins, matched after
            normalization ("SILVER", "VIP i-SMART")
        unlock_levels: Commission levels unlocked (1-50)
        is_active: Inactive rows are ignored
        updated_at: Last admin edit
    """

    __tablename__ = "badge_thresholds"
    __table_args__ = (
        CheckConstraint(
            "unlock_levels >= 1 AND unlock_levels <= 50",
            name="check_badge_thresholds_unlock_levels_range",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    badge_name: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )
    unlock_levels: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
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
            f"<BadgeThreshold(badge={self.badge_name}, "
            f"unlock_levels={self.unlock_levels})>"
        )
