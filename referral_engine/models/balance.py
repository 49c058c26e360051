"""
BalanceAccount model.

Dual-pool BSK balance per user.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.models.base import Base
from referral_engine.models.types import MoneyType


class BalanceAccount(Base):
    """
    BalanceAccount entity.

    Cached aggregate of everything credited to a user. The engines only ever
    credit; debits (withdrawal, spend) belong to other flows. Rows are created
    lazily by the first credit.

    Attributes:
        user_id: Owner (primary key)
        withdrawable_balance: Spendable pool (milestone rewards)
        total_earned_withdrawable: Lifetime credits to the spendable pool
        holding_balance: Locked pool (per-level commissions)
        total_earned_holding: Lifetime credits to the locked pool
        updated_at: Last credit or debit
    """

    __tablename__ = "balance_accounts"
    __table_args__ = (
        CheckConstraint(
            "withdrawable_balance >= 0",
            name="check_balance_withdrawable_non_negative",
        ),
        CheckConstraint(
            "total_earned_withdrawable >= 0",
            name="check_balance_total_withdrawable_non_negative",
        ),
        CheckConstraint(
            "holding_balance >= 0",
            name="check_balance_holding_non_negative",
        ),
        CheckConstraint(
            "total_earned_holding >= 0",
            name="check_balance_total_holding_non_negative",
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)

    withdrawable_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earned_withdrawable: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    holding_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earned_holding: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
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
            f"<BalanceAccount(user_id={self.user_id}, "
            f"withdrawable={self.withdrawable_balance}, "
            f"holding={self.holding_balance})>"
        )

    @property
    def total_balance(self) -> Decimal:
        """Sum of both pools."""
        return self.withdrawable_balance + self.holding_balance
