"""
Referral tree models.

Materialized ancestor paths and the locked sponsor links they are built from.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base


class ReferralEdge(Base):
    """
    ReferralEdge entity.

    One row per (user, ancestor) pair. For a fixed user the levels form a
    contiguous sequence 1..L, level 1 being the direct sponsor. Rows are
    written only by the tree builder; the engines read them.

    Attributes:
        id: Primary key
        user_id: User whose upline this row describes
        ancestor_id: Ancestor at this level
        level: Distance from user to ancestor (1 = direct sponsor)
        path: Ancestor ids from level 1 up to and including this ancestor
        created_at: When the row was built
    """

    __tablename__ = "referral_tree"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "ancestor_id", name="uq_referral_tree_user_ancestor"
        ),
        CheckConstraint("level >= 1", name="check_referral_tree_level_positive"),
        Index("idx_referral_tree_user_level", "user_id", "level"),
        Index("idx_referral_tree_ancestor_level", "ancestor_id", "level"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    ancestor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralEdge(user_id={self.user_id}, "
            f"ancestor_id={self.ancestor_id}, level={self.level})>"
        )


class SponsorLink(Base):
    """
    SponsorLink entity.

    Direct sponsor recorded at onboarding. A link only counts for the tree
    once it is locked.
    """

    __tablename__ = "sponsor_links"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    sponsor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, nullable=True, index=True
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_locked(self) -> bool:
        """Whether the sponsor relationship is final."""
        return self.sponsor_id is not None and self.locked_at is not None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SponsorLink(user_id={self.user_id}, "
            f"sponsor_id={self.sponsor_id}, locked={self.is_locked})>"
        )
