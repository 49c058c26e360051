"""
Balance ledger.

Credits the two balance pools and appends the matching ledger entries.
The engines talk to balances only through this service.
"""

import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.balance import BalanceAccount
from referral_engine.models.ledger import BalanceDestination, BonusLedgerEntry
from referral_engine.repositories.balance_repository import BalanceRepository
from referral_engine.repositories.ledger_repository import LedgerRepository


class BalanceLedger:
    """Atomic credits plus append-only ledger writes."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize balance ledger.

        Args:
            session: Async database session
        """
        self.session = session
        self.balance_repo = BalanceRepository(session)
        self.ledger_repo = LedgerRepository(session)

    async def credit_holding(
        self, user_id: uuid.UUID, amount: Decimal
    ) -> Decimal:
        """
        Credit the locked pool.

        Args:
            user_id: Account owner
            amount: Positive amount

        Returns:
            Holding balance after the credit
        """
        return await self.balance_repo.credit(
            user_id, amount, BalanceDestination.HOLDING
        )

    async def credit_withdrawable(
        self, user_id: uuid.UUID, amount: Decimal
    ) -> Decimal:
        """
        Credit the spendable pool.

        Args:
            user_id: Account owner
            amount: Positive amount

        Returns:
            Withdrawable balance after the credit
        """
        return await self.balance_repo.credit(
            user_id, amount, BalanceDestination.WITHDRAWABLE
        )

    async def append_commission_entry(self, **entry: Any) -> int | None:
        """
        Append a commission ledger entry.

        Returns:
            New entry ID, or None if the (event, level, sponsor) key exists
        """
        return await self.ledger_repo.insert_commission_entry(**entry)

    async def append_bonus_entry(
        self,
        user_id: uuid.UUID,
        entry_type: str,
        amount: Decimal,
        meta: dict[str, Any] | None = None,
    ) -> BonusLedgerEntry:
        """Append a general bonus ledger entry."""
        return await self.ledger_repo.append_bonus_entry(
            user_id, entry_type, amount, meta
        )

    async def get_account(self, user_id: uuid.UUID) -> BalanceAccount | None:
        """Get current balances of a user."""
        return await self.balance_repo.get_account(user_id)
