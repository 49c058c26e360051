"""
Ledger repository.

Data access layer for CommissionLedgerEntry and BonusLedgerEntry models.
Both ledgers are append-only.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.ledger import (
    BonusLedgerEntry,
    CommissionLedgerEntry,
)
from referral_engine.repositories.base import BaseRepository


def _json_safe(value: Any) -> Any:
    """Convert values JSON columns cannot store natively."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class LedgerRepository(BaseRepository[CommissionLedgerEntry]):
    """Ledger repository with idempotent commission inserts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(CommissionLedgerEntry, session)

    async def insert_commission_entry(
        self,
        *,
        event_id: str,
        sponsor_id: uuid.UUID,
        referee_id: uuid.UUID | None,
        level: int,
        commission_bsk: Decimal,
        earning_type: str,
        commission_type: str,
        destination: str,
        base_amount: Decimal,
        commission_percent: Decimal,
        sponsor_badge_at_event: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> int | None:
        """
        Append a commission entry unless one exists for the same key.

        The (event_id, level, sponsor_id) unique key turns a repeated insert
        into a no-op.

        Returns:
            New entry ID, or None if the entry was already recorded
        """
        table = CommissionLedgerEntry.__table__
        stmt = (
            self.upsert_insert()
            .values(
                event_id=event_id,
                sponsor_id=sponsor_id,
                referee_id=referee_id,
                level=level,
                commission_bsk=commission_bsk,
                earning_type=earning_type,
                commission_type=commission_type,
                destination=destination,
                base_amount=base_amount,
                commission_percent=commission_percent,
                sponsor_badge_at_event=sponsor_badge_at_event,
                meta=_json_safe(meta or {}),
            )
            .on_conflict_do_nothing(
                index_elements=[
                    table.c.event_id,
                    table.c.level,
                    table.c.sponsor_id,
                ]
            )
            .returning(table.c.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def append_bonus_entry(
        self,
        user_id: uuid.UUID,
        entry_type: str,
        amount: Decimal,
        meta: dict[str, Any] | None = None,
    ) -> BonusLedgerEntry:
        """
        Append a bonus ledger entry.

        Args:
            user_id: Credited user
            entry_type: Kind of credit (team_income, vip_milestone, ...)
            amount: Credited amount
            meta: Context stored with the entry

        Returns:
            Created entry
        """
        entry = BonusLedgerEntry(
            user_id=user_id,
            entry_type=entry_type,
            amount_bsk=amount,
            asset="BSK",
            meta_json=_json_safe(meta or {}),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def find_by_event(self, event_id: str) -> list[CommissionLedgerEntry]:
        """Get entries written for an event, ordered by level."""
        stmt = (
            select(CommissionLedgerEntry)
            .where(CommissionLedgerEntry.event_id == event_id)
            .order_by(CommissionLedgerEntry.level.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sum_by_sponsor_and_destination(
        self,
    ) -> dict[tuple[uuid.UUID, str], Decimal]:
        """
        Sum ledger commissions per sponsor and balance pool.

        Returns:
            Mapping of (sponsor_id, destination) to total credited
        """
        stmt = select(
            CommissionLedgerEntry.sponsor_id,
            CommissionLedgerEntry.destination,
            func.sum(CommissionLedgerEntry.commission_bsk),
        ).group_by(
            CommissionLedgerEntry.sponsor_id,
            CommissionLedgerEntry.destination,
        )
        result = await self.session.execute(stmt)
        return {
            (sponsor_id, destination): Decimal(str(total or 0))
            for sponsor_id, destination, total in result.all()
        }
