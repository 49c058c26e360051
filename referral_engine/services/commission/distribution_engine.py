"""
Commission distribution engine.

Walks an earner's sponsor chain and pays each ancestor the commission
their badge unlocks. Every level is committed as its own transaction and
every payment is keyed by (event_id, level, sponsor_id); a failed level is
rolled back alone and a retried event never pays a level twice.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.config.settings import settings
from referral_engine.models.ledger import (
    EVENT_ID_MAX_LENGTH,
    BalanceDestination,
    CommissionType,
)
from referral_engine.repositories.referral_tree_repository import (
    ReferralTreeRepository,
)
from referral_engine.repositories.sponsor_link_repository import (
    SponsorLinkRepository,
)
from referral_engine.services.badge_policy import BadgePolicy
from referral_engine.services.balance_ledger import BalanceLedger
from referral_engine.services.base_service import BaseService
from referral_engine.services.commission.rate_table import CommissionRateTable
from referral_engine.services.referral_tree_builder import ReferralTreeBuilder
from referral_engine.utils.exceptions import (
    MUST_LOG,
    InvalidEarningEventError,
    LedgerUnavailableError,
    UntrustedEarningSourceError,
    is_connection_lost,
    is_store_unavailable,
)
from referral_engine.utils.money import to_decimal


class DistributionReason(str, Enum):
    """Why a distribution paid nothing."""

    COMMISSIONS_DISABLED = "commissions_disabled"
    NO_SPONSORS = "no_sponsors"


class SkipReason(str, Enum):
    """Why a single level was not paid."""

    LEVEL_LOCKED = "level_locked"
    RATE_NOT_CONFIGURED = "rate_not_configured"
    ZERO_AMOUNT = "zero_amount"
    ALREADY_PAID = "already_paid"


@dataclass
class LevelCommission:
    """A commission paid at one level."""

    level: int
    sponsor_id: uuid.UUID
    amount: Decimal
    commission_percent: Decimal
    sponsor_badge: str | None
    holding_balance: Decimal


@dataclass
class SkippedLevel:
    """A level evaluated without payment."""

    level: int
    sponsor_id: uuid.UUID
    reason: SkipReason
    unlocked_levels: int | None = None


@dataclass
class FailedLevel:
    """A level whose processing raised and was rolled back."""

    level: int
    sponsor_id: uuid.UUID
    error: str


@dataclass
class DistributionResult:
    """Result of one distribution."""

    success: bool
    event_id: str
    commissions_distributed: Decimal = Decimal("0")
    levels_processed: int = 0
    commissions: list[LevelCommission] = field(default_factory=list)
    skipped: list[SkippedLevel] = field(default_factory=list)
    failed_levels: list[FailedLevel] = field(default_factory=list)
    reason: DistributionReason | None = None


class CommissionDistributionEngine(BaseService):
    """
    Multi-level commission distribution.

    Only internal services and job actors may call distribute; the earning
    type must be on the configured allow-list.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize distribution engine.

        Args:
            session: Async database session
        """
        super().__init__(session)
        self.tree_repo = ReferralTreeRepository(session)
        self.link_repo = SponsorLinkRepository(session)
        self.badge_policy = BadgePolicy(session)
        self.ledger = BalanceLedger(session)
        self.tree_builder = ReferralTreeBuilder(session)

    async def distribute(
        self,
        earner_id: uuid.UUID,
        earning_amount: Decimal | int | str,
        earning_type: str,
        metadata: dict[str, Any] | None = None,
        event_id: str | None = None,
    ) -> DistributionResult:
        """
        Distribute commissions for an earning event.

        Args:
            earner_id: User who generated the economic event
            earning_amount: Event amount, must be positive
            earning_type: Kind of event (must be allow-listed)
            metadata: Context stored with every ledger entry
            event_id: Identity of the event; repeated calls with the same
                id pay each (level, sponsor) at most once

        Returns:
            DistributionResult with totals and per-level outcomes

        Raises:
            InvalidEarningEventError: If the amount is not positive or the
                event id is too long
            UntrustedEarningSourceError: If earning_type is not allowed
            LedgerUnavailableError: If the store cannot be reached
        """
        amount = self._validate_amount(earning_amount)
        self._validate_earning_type(earning_type)
        metadata = dict(metadata or {})
        event_id = self._resolve_event_id(
            event_id, earner_id, earning_type, metadata
        )

        return await self._distribute(
            earner_id, amount, earning_type, metadata, event_id
        )

    async def _distribute(
        self,
        earner_id: uuid.UUID,
        amount: Decimal,
        earning_type: str,
        metadata: dict[str, Any],
        event_id: str,
    ) -> DistributionResult:
        """
        Walk the chain, committing each level on its own.

        A fatal error at level N leaves levels 1..N-1 committed; a retry
        with the same event_id pays only the remaining levels.
        """
        try:
            rate_table = await CommissionRateTable.load(self.session)
            path = (
                await self._load_ancestor_path(earner_id)
                if rate_table is not None
                else []
            )
            await self.commit()
        except Exception as e:
            await self.rollback()
            if is_store_unavailable(e):
                raise LedgerUnavailableError(
                    "Commission configuration store unreachable"
                ) from e
            raise

        if rate_table is None:
            self.logger.info(
                "Commission distribution disabled",
                extra={"earner_id": str(earner_id), "event_id": event_id},
            )
            return DistributionResult(
                success=True,
                event_id=event_id,
                reason=DistributionReason.COMMISSIONS_DISABLED,
            )

        if not path:
            self.logger.debug(
                "No sponsors found for earner",
                extra={"earner_id": str(earner_id), "event_id": event_id},
            )
            return DistributionResult(
                success=True,
                event_id=event_id,
                reason=DistributionReason.NO_SPONSORS,
            )

        max_levels = min(len(path), rate_table.max_levels)
        result = DistributionResult(success=True, event_id=event_id)

        for level, sponsor_id in path[:max_levels]:
            result.levels_processed += 1
            try:
                outcome = await self._process_level(
                    level=level,
                    sponsor_id=sponsor_id,
                    earner_id=earner_id,
                    amount=amount,
                    earning_type=earning_type,
                    metadata=metadata,
                    event_id=event_id,
                    rate_table=rate_table,
                )
                await self.commit()
            except MUST_LOG as e:
                await self.rollback()
                if is_connection_lost(e):
                    self.logger.error(
                        f"Connection lost at level {level}, earlier levels kept",
                        extra={
                            "event_id": event_id,
                            "levels_paid": len(result.commissions),
                        },
                    )
                    raise LedgerUnavailableError(
                        f"Connection lost while paying level {level}"
                    ) from e
                self.logger.error(
                    f"Commission level {level} failed, continuing with next level",
                    extra={
                        "event_id": event_id,
                        "sponsor_id": str(sponsor_id),
                        "level": level,
                        "error": str(e),
                    },
                )
                result.failed_levels.append(
                    FailedLevel(level=level, sponsor_id=sponsor_id, error=str(e))
                )
                continue
            except Exception:
                await self.rollback()
                raise

            if isinstance(outcome, LevelCommission):
                result.commissions.append(outcome)
                result.commissions_distributed += outcome.amount
            else:
                result.skipped.append(outcome)

        self.logger.info(
            "Commission distribution processed",
            extra={
                "earner_id": str(earner_id),
                "event_id": event_id,
                "earning_type": earning_type,
                "base_amount": str(amount),
                "levels_processed": result.levels_processed,
                "levels_paid": len(result.commissions),
                "levels_failed": len(result.failed_levels),
                "total": str(result.commissions_distributed),
            },
        )

        return result

    async def _load_ancestor_path(
        self, earner_id: uuid.UUID
    ) -> list[tuple[int, uuid.UUID]]:
        """
        Load the ancestor path once, repairing a missing tree.

        The returned list is a snapshot; it is never re-read mid-walk.

        Returns:
            (level, ancestor_id) pairs ordered by level
        """
        try:
            edges = await self.tree_repo.get_ancestor_path(
                earner_id, max_level=settings.max_tree_depth
            )
            if not edges:
                sponsor_id = await self.link_repo.get_locked_sponsor_id(earner_id)
                if sponsor_id is not None:
                    self.logger.warning(
                        "Locked sponsor without referral tree, rebuilding",
                        extra={
                            "earner_id": str(earner_id),
                            "sponsor_id": str(sponsor_id),
                        },
                    )
                    await self.tree_builder.rebuild_tree(earner_id)
                    edges = await self.tree_repo.get_ancestor_path(
                        earner_id, max_level=settings.max_tree_depth
                    )
        except SQLAlchemyError as e:
            if is_store_unavailable(e):
                raise LedgerUnavailableError("Referral tree store unreachable") from e
            raise

        return [(edge.level, edge.ancestor_id) for edge in edges]

    async def _process_level(
        self,
        *,
        level: int,
        sponsor_id: uuid.UUID,
        earner_id: uuid.UUID,
        amount: Decimal,
        earning_type: str,
        metadata: dict[str, Any],
        event_id: str,
        rate_table: CommissionRateTable,
    ) -> LevelCommission | SkippedLevel:
        """
        Evaluate and pay one level.

        Returns:
            LevelCommission if paid, SkippedLevel otherwise
        """
        badge, unlocked_levels = await self.badge_policy.resolve_unlock_levels(
            sponsor_id
        )

        # Gate is per ancestor: a locked level does not stop the walk
        if level > unlocked_levels:
            self.logger.debug(
                f"Level {level} locked for sponsor",
                extra={
                    "sponsor_id": str(sponsor_id),
                    "badge": badge,
                    "unlocked_levels": unlocked_levels,
                },
            )
            return SkippedLevel(
                level=level,
                sponsor_id=sponsor_id,
                reason=SkipReason.LEVEL_LOCKED,
                unlocked_levels=unlocked_levels,
            )

        rate = rate_table.rate_for(level)
        if rate <= 0:
            return SkippedLevel(
                level=level,
                sponsor_id=sponsor_id,
                reason=SkipReason.RATE_NOT_CONFIGURED,
                unlocked_levels=unlocked_levels,
            )

        quote = rate_table.quote(amount, level, badge)
        if quote.amount <= 0:
            return SkippedLevel(
                level=level,
                sponsor_id=sponsor_id,
                reason=SkipReason.ZERO_AMOUNT,
                unlocked_levels=unlocked_levels,
            )
        commission = quote.amount
        terms = {
            "rate_percent": str(quote.rate_percent),
            "vip_multiplier": str(quote.vip_multiplier),
            "capped": quote.capped,
        }

        entry_id = await self.ledger.append_commission_entry(
            event_id=event_id,
            sponsor_id=sponsor_id,
            referee_id=earner_id,
            level=level,
            commission_bsk=commission,
            earning_type=earning_type,
            commission_type=CommissionType.TEAM_INCOME.value,
            destination=BalanceDestination.HOLDING.value,
            base_amount=amount,
            commission_percent=quote.effective_percent,
            sponsor_badge_at_event=badge,
            meta={**metadata, **terms},
        )
        if entry_id is None:
            self.logger.info(
                f"Level {level} already paid for event, skipping",
                extra={"event_id": event_id, "sponsor_id": str(sponsor_id)},
            )
            return SkippedLevel(
                level=level,
                sponsor_id=sponsor_id,
                reason=SkipReason.ALREADY_PAID,
                unlocked_levels=unlocked_levels,
            )

        holding_balance = await self.ledger.credit_holding(sponsor_id, commission)
        await self.ledger.append_bonus_entry(
            sponsor_id,
            CommissionType.TEAM_INCOME.value,
            commission,
            meta={
                **metadata,
                "event_id": event_id,
                "level": level,
                "referee_id": earner_id,
                "earning_type": earning_type,
                "base_amount": amount,
                "commission_percent": quote.effective_percent,
                **terms,
                "destination": BalanceDestination.HOLDING.value,
            },
        )

        self.logger.info(
            "Team income commission paid",
            extra={
                "sponsor_id": str(sponsor_id),
                "referee_id": str(earner_id),
                "level": level,
                "rate": str(rate),
                "amount": str(commission),
                "event_id": event_id,
            },
        )

        return LevelCommission(
            level=level,
            sponsor_id=sponsor_id,
            amount=commission,
            commission_percent=quote.effective_percent,
            sponsor_badge=badge,
            holding_balance=holding_balance,
        )

    @staticmethod
    def _validate_amount(earning_amount: Decimal | int | str) -> Decimal:
        """Validate and convert the earning amount."""
        try:
            amount = to_decimal(earning_amount)
        except ValueError as e:
            raise InvalidEarningEventError(str(e)) from e

        if not amount.is_finite() or amount <= 0:
            raise InvalidEarningEventError(
                f"Earning amount must be positive, got {earning_amount}"
            )
        return amount

    @staticmethod
    def _validate_earning_type(earning_type: str) -> None:
        """Reject earning types internal services are not allowed to report."""
        allowed = settings.get_earning_types()
        if earning_type not in allowed:
            raise UntrustedEarningSourceError(
                f"Earning type '{earning_type}' is not allowed to trigger commissions"
            )

    def _resolve_event_id(
        self,
        event_id: str | None,
        earner_id: uuid.UUID,
        earning_type: str,
        metadata: dict[str, Any],
    ) -> str:
        """
        Determine the event identity used for deduplication.

        Falls back to (earning_type, earner, metadata source_id) and, when
        no source id is known either, to a random id that cannot dedup.

        Raises:
            InvalidEarningEventError: If the id does not fit the ledger column
        """
        if event_id:
            resolved = str(event_id)
        elif metadata.get("source_id") is not None:
            resolved = f"{earning_type}:{earner_id}:{metadata['source_id']}"
        else:
            resolved = uuid.uuid4().hex
            self.logger.warning(
                "Distribution without event_id, retries of this event are not idempotent",
                extra={
                    "earner_id": str(earner_id),
                    "earning_type": earning_type,
                    "generated_event_id": resolved,
                },
            )

        if len(resolved) > EVENT_ID_MAX_LENGTH:
            raise InvalidEarningEventError(
                f"Event id longer than {EVENT_ID_MAX_LENGTH} characters"
            )
        return resolved
