"""
Ledger models.

Append-only commission and bonus ledgers. The commission ledger is the
reconciliation source of truth; balances are derived from it.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base
from referral_engine.models.types import MoneyType, RatePercentType


# Width of the event_id column
EVENT_ID_MAX_LENGTH = 128


class CommissionType(str, Enum):
    """Kind of commission ledger entry."""

    TEAM_INCOME = "team_income"
    VIP_MILESTONE = "vip_milestone"


class BalanceDestination(str, Enum):
    """Balance pool a ledger entry was credited to."""

    HOLDING = "holding"
    WITHDRAWABLE = "withdrawable"


class CommissionLedgerEntry(Base):
    """
    CommissionLedgerEntry entity.

    One row per (event, level, sponsor). The unique key makes retries of the
    same event safe: a second insert is a no-op.

    Attributes:
        id: Primary key
        event_id: Identity of the triggering economic event
        sponsor_id: Ancestor who was paid
        referee_id: Earner whose event produced the commission (None for milestones)
        level: Tree level (0 for milestones)
        commission_bsk: Amount credited
        earning_type: Kind of triggering event
        commission_type: team_income or vip_milestone
        destination: Balance pool credited
        base_amount: Earning amount the percent was applied to
        commission_percent: Percent applied
        sponsor_badge_at_event: Sponsor badge when paid
        meta: Caller-supplied metadata
        created_at: When the entry was written
    """

    __tablename__ = "commission_ledger"
    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "level",
            "sponsor_id",
            name="uq_commission_ledger_event_level_sponsor",
        ),
        Index("idx_commission_ledger_sponsor_created", "sponsor_id", "created_at"),
        Index("idx_commission_ledger_referee", "referee_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    event_id: Mapped[str] = mapped_column(
        String(EVENT_ID_MAX_LENGTH), nullable=False
    )
    sponsor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    referee_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_bsk: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    earning_type: Mapped[str] = mapped_column(String(64), nullable=False)
    commission_type: Mapped[str] = mapped_column(
        String(32), default=CommissionType.TEAM_INCOME.value, nullable=False
    )
    destination: Mapped[str] = mapped_column(
        String(16), default=BalanceDestination.HOLDING.value, nullable=False
    )
    base_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )
    sponsor_badge_at_event: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    meta: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionLedgerEntry(event_id={self.event_id}, "
            f"sponsor_id={self.sponsor_id}, level={self.level}, "
            f"amount={self.commission_bsk})>"
        )


class BonusLedgerEntry(Base):
    """General bonus ledger entry, one per credit of any kind."""

    __tablename__ = "bonus_ledger"
    __table_args__ = (
        Index("idx_bonus_ledger_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_bsk: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    asset: Mapped[str] = mapped_column(String(16), default="BSK", nullable=False)
    meta_json: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BonusLedgerEntry(user_id={self.user_id}, "
            f"type={self.entry_type}, amount={self.amount_bsk})>"
        )
