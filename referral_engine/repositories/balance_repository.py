"""
Balance repository.

Data access layer for BalanceAccount model. Every credit is a single
INSERT ... ON CONFLICT DO UPDATE statement incrementing the stored value,
so concurrent credits to the same account never lose an update.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.balance import BalanceAccount
from referral_engine.models.ledger import BalanceDestination
from referral_engine.repositories.base import BaseRepository


# Balance column and its lifetime total, per pool
_POOL_COLUMNS = {
    BalanceDestination.HOLDING: ("holding_balance", "total_earned_holding"),
    BalanceDestination.WITHDRAWABLE: (
        "withdrawable_balance",
        "total_earned_withdrawable",
    ),
}


class BalanceRepository(BaseRepository[BalanceAccount]):
    """Balance repository with atomic credit operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize balance repository."""
        super().__init__(BalanceAccount, session)

    async def credit(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        destination: BalanceDestination,
    ) -> Decimal:
        """
        Atomically credit a balance pool, creating the account if missing.

        Args:
            user_id: Account owner
            amount: Positive amount to add
            destination: Pool to credit

        Returns:
            Pool balance after the credit

        Raises:
            ValueError: If amount is not positive
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")

        balance_column, total_column = _POOL_COLUMNS[destination]
        now = datetime.now(UTC)

        initial = {
            "user_id": user_id,
            "withdrawable_balance": Decimal("0"),
            "total_earned_withdrawable": Decimal("0"),
            "holding_balance": Decimal("0"),
            "total_earned_holding": Decimal("0"),
            "updated_at": now,
        }
        initial[balance_column] = amount
        initial[total_column] = amount

        table = BalanceAccount.__table__
        stmt = self.upsert_insert().values(**initial)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id],
            set_={
                balance_column: table.c[balance_column] + amount,
                total_column: table.c[total_column] + amount,
                "updated_at": now,
            },
        ).returning(table.c[balance_column])

        result = await self.session.execute(stmt)
        return Decimal(result.scalar_one())

    async def get_account(self, user_id: uuid.UUID) -> BalanceAccount | None:
        """
        Get balance account, bypassing the identity map.

        Args:
            user_id: Account owner

        Returns:
            Fresh account state or None if never credited
        """
        return await self.session.get(
            BalanceAccount, user_id, populate_existing=True
        )

    async def find_inconsistent(self) -> list[BalanceAccount]:
        """Get accounts whose current balance exceeds lifetime earnings."""
        stmt = select(BalanceAccount).where(
            or_(
                BalanceAccount.holding_balance
                > BalanceAccount.total_earned_holding,
                BalanceAccount.withdrawable_balance
                > BalanceAccount.total_earned_withdrawable,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
