"""
Commission rate table.

Per-level percentages plus the global cap and VIP multiplier.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.config.badges import BadgeTier
from referral_engine.repositories.commission_settings_repository import (
    CommissionSettingsRepository,
)
from referral_engine.utils.money import percent_of, round_down


@dataclass(frozen=True)
class CommissionQuote:
    """Payable amount of one level with the terms that produced it."""

    amount: Decimal
    rate_percent: Decimal
    vip_multiplier: Decimal = Decimal("1")
    capped: bool = False

    @property
    def effective_percent(self) -> Decimal:
        """Percent of the base actually applied before any cap."""
        return self.rate_percent * self.vip_multiplier


@dataclass(frozen=True)
class CommissionRateTable:
    """Immutable snapshot of the commission configuration."""

    max_levels: int
    rates: dict[int, Decimal] = field(default_factory=dict)
    cap: Decimal | None = None
    vip_multiplier: Decimal = Decimal("1")

    @classmethod
    async def load(cls, session: AsyncSession) -> "CommissionRateTable | None":
        """
        Load the active configuration.

        Args:
            session: Async database session

        Returns:
            Rate table, or None when settings are missing or inactive
        """
        repo = CommissionSettingsRepository(session)
        current = await repo.get_current()
        if current is None or not current.is_active:
            return None

        rates = await repo.get_level_rates()
        return cls(
            max_levels=current.max_levels,
            rates=rates,
            cap=Decimal(current.cap_usd) if current.cap_usd is not None else None,
            vip_multiplier=Decimal(current.vip_multiplier or 1),
        )

    def rate_for(self, level: int) -> Decimal:
        """
        Get configured percent for a level.

        Args:
            level: Tree level

        Returns:
            Percent (0 if the level is not configured)
        """
        return self.rates.get(level, Decimal("0"))

    def quote(
        self,
        base_amount: Decimal,
        level: int,
        sponsor_badge: str | None = None,
    ) -> CommissionQuote:
        """
        Calculate the payable amount for a level with its terms.

        Formula: base * percent / 100, times the VIP multiplier for VIP
        sponsors, capped at cap, rounded down to 8 decimals.

        Args:
            base_amount: Earning amount
            level: Tree level
            sponsor_badge: Canonical badge of the sponsor

        Returns:
            CommissionQuote (amount 0 if nothing is payable)
        """
        rate = self.rate_for(level)
        if rate <= 0 or base_amount <= 0:
            return CommissionQuote(amount=Decimal("0"), rate_percent=rate)

        amount = percent_of(base_amount, rate)

        multiplier = Decimal("1")
        if sponsor_badge == BadgeTier.VIP.value and self.vip_multiplier != 1:
            multiplier = self.vip_multiplier
            amount = round_down(amount * multiplier)

        capped = self.cap is not None and amount > self.cap
        if capped:
            amount = round_down(self.cap)

        return CommissionQuote(
            amount=amount,
            rate_percent=rate,
            vip_multiplier=multiplier,
            capped=capped,
        )

    def calculate(
        self,
        base_amount: Decimal,
        level: int,
        sponsor_badge: str | None = None,
    ) -> Decimal:
        """Calculate the payable amount for a level."""
        return self.quote(base_amount, level, sponsor_badge).amount
