"""
Integration tests for multi-level commission distribution.

Tests run against an in-memory SQLite database and cover:
- Per-level badge gating and rates
- Event id deduplication
- Disabled configuration and empty trees
- Lazy tree repair
- Per-level failure isolation and retry
- Committed levels surviving a lost connection
- Admin thresholds stored under any badge spelling
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError

from referral_engine.models import (
    BalanceAccount,
    BonusLedgerEntry,
    CommissionLedgerEntry,
    ReferralEdge,
)
from referral_engine.repositories import LedgerRepository
from referral_engine.services.commission import (
    CommissionDistributionEngine,
    DistributionReason,
    SkipReason,
)
from referral_engine.utils.exceptions import (
    LedgerUnavailableError,
    UntrustedEarningSourceError,
)


async def holding_of(session, user_id) -> Decimal | None:
    """Current holding balance of a user, None without account."""
    account = await session.get(BalanceAccount, user_id, populate_existing=True)
    return None if account is None else account.holding_balance


async def ledger_count(session) -> int:
    """Number of commission ledger rows."""
    result = await session.execute(
        select(func.count()).select_from(CommissionLedgerEntry)
    )
    return result.scalar_one()


@pytest_asyncio.fixture
async def chain(user_ids, build_tree, give_badge, set_threshold, configure_commissions):
    """
    Earner with a 3-level upline.

    Level 1 is Gold, level 2 Silver restricted to 1 level, level 3 VIP;
    rates {1: 10, 2: 5, 3: 3}.
    """
    earner, gold, silver, vip = user_ids(4)
    await build_tree([earner, gold, silver, vip])
    await give_badge(gold, "GOLD")
    await give_badge(silver, "Silver")
    await give_badge(vip, "i-Smart VIP")
    await set_threshold("Silver", 1)
    await configure_commissions({1: "10", 2: "5", 3: "3"})
    return earner, gold, silver, vip


class TestLevelGating:
    """Test per-level payment rules."""

    @pytest.mark.asyncio
    async def test_locked_level_skipped_walk_continues(self, session, chain):
        """Test that a locked ancestor is skipped and deeper levels still pay."""
        earner, gold, silver, vip = chain
        engine = CommissionDistributionEngine(session)

        result = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-a"
        )

        assert result.success is True
        assert result.levels_processed == 3
        assert [(c.level, c.sponsor_id, c.amount) for c in result.commissions] == [
            (1, gold, Decimal("100")),
            (3, vip, Decimal("30")),
        ]
        assert result.commissions_distributed == Decimal("130")
        assert len(result.skipped) == 1
        assert result.skipped[0].level == 2
        assert result.skipped[0].reason == SkipReason.LEVEL_LOCKED
        assert result.skipped[0].unlocked_levels == 1

        assert await holding_of(session, gold) == Decimal("100")
        assert await holding_of(session, silver) is None
        assert await holding_of(session, vip) == Decimal("30")

    @pytest.mark.asyncio
    async def test_ledger_entries_recorded(self, session, chain):
        """Test ledger and bonus entries written per paid level."""
        earner, gold, silver, vip = chain
        engine = CommissionDistributionEngine(session)

        await engine.distribute(
            earner,
            Decimal("1000"),
            "badge_purchase",
            metadata={"badge": "Gold"},
            event_id="evt-ledger",
        )

        entries = await LedgerRepository(session).find_by_event("evt-ledger")
        assert [(e.level, e.sponsor_id) for e in entries] == [(1, gold), (3, vip)]
        first = entries[0]
        assert first.referee_id == earner
        assert first.commission_type == "team_income"
        assert first.destination == "holding"
        assert first.commission_percent == Decimal("10")
        assert first.base_amount == Decimal("1000")
        assert first.sponsor_badge_at_event == "Gold"
        assert first.meta["badge"] == "Gold"
        assert Decimal(first.meta["rate_percent"]) == Decimal("10")
        assert Decimal(first.meta["vip_multiplier"]) == Decimal("1")
        assert first.meta["capped"] is False

        bonus = (
            await session.execute(
                select(BonusLedgerEntry).order_by(BonusLedgerEntry.id)
            )
        ).scalars().all()
        assert [(b.user_id, b.entry_type) for b in bonus] == [
            (gold, "team_income"),
            (vip, "team_income"),
        ]
        assert bonus[0].meta_json["referee_id"] == str(earner)
        assert bonus[0].meta_json["level"] == 1

    @pytest.mark.asyncio
    async def test_max_levels_limits_walk(
        self, session, user_ids, build_tree, give_badge, configure_commissions
    ):
        """Test that exactly min(path length, max_levels) levels are evaluated."""
        earner, *ancestors = user_ids(6)
        await build_tree([earner, *ancestors])
        for ancestor in ancestors:
            await give_badge(ancestor, "VIP")
        await configure_commissions(
            {level: "1" for level in range(1, 6)}, max_levels=3
        )

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("100"), "ad_mining", event_id="evt-depth"
        )

        assert result.levels_processed == 3
        assert [c.sponsor_id for c in result.commissions] == ancestors[:3]
        assert await holding_of(session, ancestors[3]) is None

    @pytest.mark.asyncio
    async def test_zero_rate_level_skipped(
        self, session, user_ids, build_tree, give_badge, configure_commissions
    ):
        """Test that zero and missing rates are skipped as not configured."""
        earner, first, second, third = user_ids(4)
        await build_tree([earner, first, second, third])
        for ancestor in (first, second, third):
            await give_badge(ancestor, "VIP")
        await configure_commissions({1: "0", 2: "5"})

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("100"), "ad_mining", event_id="evt-rate"
        )

        assert result.levels_processed == 3
        assert [c.level for c in result.commissions] == [2]
        assert {(s.level, s.reason) for s in result.skipped} == {
            (1, SkipReason.RATE_NOT_CONFIGURED),
            (3, SkipReason.RATE_NOT_CONFIGURED),
        }

    @pytest.mark.asyncio
    async def test_dust_amount_skipped(self, session, chain):
        """Test that commissions rounding to zero are not credited."""
        earner = chain[0]

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("0.00000001"), "ad_mining", event_id="evt-dust"
        )

        assert result.commissions == []
        assert SkipReason.ZERO_AMOUNT in {s.reason for s in result.skipped}
        assert await ledger_count(session) == 0

    @pytest.mark.asyncio
    async def test_badge_resolved_fresh_per_event(self, session, chain, give_badge):
        """Test that a badge upgrade applies to the next event."""
        earner, gold, silver, vip = chain
        engine = CommissionDistributionEngine(session)

        await engine.distribute(earner, Decimal("1000"), "badge_purchase", event_id="e1")
        await give_badge(silver, "Diamond")
        result = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="e2"
        )

        assert [c.level for c in result.commissions] == [1, 2, 3]
        assert await holding_of(session, silver) == Decimal("50")

    @pytest.mark.asyncio
    async def test_cap_and_vip_multiplier(
        self, session, user_ids, build_tree, give_badge, configure_commissions
    ):
        """Test cap and multiplier from commission settings."""
        earner, vip, gold = user_ids(3)
        await build_tree([earner, vip, gold])
        await give_badge(vip, "VIP")
        await give_badge(gold, "Gold")
        await configure_commissions(
            {1: "10", 2: "10"}, cap="120", vip_multiplier="2"
        )

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "subscription", event_id="evt-cap"
        )

        assert [c.amount for c in result.commissions] == [
            Decimal("120"),
            Decimal("100"),
        ]

        vip_entry, gold_entry = await LedgerRepository(session).find_by_event(
            "evt-cap"
        )
        assert vip_entry.commission_percent == Decimal("20")
        assert Decimal(vip_entry.meta["rate_percent"]) == Decimal("10")
        assert Decimal(vip_entry.meta["vip_multiplier"]) == Decimal("2")
        assert vip_entry.meta["capped"] is True
        assert gold_entry.commission_percent == Decimal("10")
        assert gold_entry.meta["capped"] is False


class TestEventDeduplication:
    """Test that an event pays each level and sponsor at most once."""

    @pytest.mark.asyncio
    async def test_same_event_id_pays_once(self, session, chain):
        """Test that replaying an event credits nothing new."""
        earner, gold, silver, vip = chain
        engine = CommissionDistributionEngine(session)

        first = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-dup"
        )
        second = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-dup"
        )

        assert first.commissions_distributed == Decimal("130")
        assert second.commissions_distributed == Decimal("0")
        assert second.commissions == []
        assert [s.reason for s in second.skipped if s.level != 2] == [
            SkipReason.ALREADY_PAID,
            SkipReason.ALREADY_PAID,
        ]
        assert await ledger_count(session) == 2
        assert await holding_of(session, gold) == Decimal("100")

    @pytest.mark.asyncio
    async def test_source_id_derives_event_id(self, session, chain):
        """Test that metadata source_id deduplicates without explicit id."""
        earner, gold, _, _ = chain
        engine = CommissionDistributionEngine(session)
        metadata = {"source_id": "purchase-1"}

        first = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", metadata=metadata
        )
        second = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", metadata=metadata
        )

        assert first.event_id == second.event_id
        assert second.commissions == []
        assert await holding_of(session, gold) == Decimal("100")

    @pytest.mark.asyncio
    async def test_distinct_events_pay_again(self, session, chain):
        """Test that different events are paid independently."""
        earner, gold, _, _ = chain
        engine = CommissionDistributionEngine(session)

        await engine.distribute(earner, Decimal("1000"), "badge_purchase", event_id="a")
        await engine.distribute(earner, Decimal("500"), "badge_purchase", event_id="b")

        account = await session.get(BalanceAccount, gold, populate_existing=True)
        assert account.holding_balance == Decimal("150")
        assert account.total_earned_holding == Decimal("150")
        assert account.withdrawable_balance == Decimal("0")


class TestZeroResults:
    """Test non-error outcomes that pay nothing."""

    @pytest.mark.asyncio
    async def test_no_settings(self, session, user_ids, build_tree):
        """Test that missing settings disable distribution."""
        earner, sponsor = user_ids(2)
        await build_tree([earner, sponsor])

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-b"
        )

        assert result.success is True
        assert result.reason == DistributionReason.COMMISSIONS_DISABLED
        assert result.commissions_distributed == Decimal("0")
        assert result.levels_processed == 0

    @pytest.mark.asyncio
    async def test_inactive_settings(
        self, session, user_ids, build_tree, configure_commissions
    ):
        """Test that inactive settings disable distribution."""
        earner, sponsor = user_ids(2)
        await build_tree([earner, sponsor])
        await configure_commissions({1: "10"}, is_active=False)

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-off"
        )

        assert result.reason == DistributionReason.COMMISSIONS_DISABLED
        assert await ledger_count(session) == 0

    @pytest.mark.asyncio
    async def test_no_sponsors(self, session, user_ids, configure_commissions):
        """Test that users without upline get a reason code."""
        (earner,) = user_ids(1)
        await configure_commissions({1: "10"})

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-none"
        )

        assert result.success is True
        assert result.reason == DistributionReason.NO_SPONSORS
        assert result.levels_processed == 0


class TestLazyTreeRepair:
    """Test rebuilding a missing tree from locked sponsor links."""

    @pytest.mark.asyncio
    async def test_missing_tree_rebuilt(
        self, session, user_ids, link_chain, give_badge, configure_commissions
    ):
        """Test that a locked sponsor without tree rows still gets paid."""
        earner, sponsor, grand = user_ids(3)
        await link_chain([earner, sponsor, grand])
        await give_badge(sponsor, "VIP")
        await give_badge(grand, "VIP")
        await configure_commissions({1: "10", 2: "5"})

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("200"), "badge_purchase", event_id="evt-repair"
        )

        assert [(c.level, c.sponsor_id) for c in result.commissions] == [
            (1, sponsor),
            (2, grand),
        ]
        edges = (
            await session.execute(
                select(ReferralEdge).where(ReferralEdge.user_id == earner)
            )
        ).scalars().all()
        assert len(edges) == 2


class TestFailureHandling:
    """Test trust boundary and failure isolation."""

    @pytest.mark.asyncio
    async def test_untrusted_earning_type(self, session, chain):
        """Test that unknown earning types are rejected."""
        with pytest.raises(UntrustedEarningSourceError):
            await CommissionDistributionEngine(session).distribute(
                chain[0], Decimal("1000"), "manual_credit", event_id="x"
            )

        assert await ledger_count(session) == 0

    @pytest.mark.asyncio
    async def test_failed_level_isolated_and_retried(self, session, chain):
        """Test that one failing level does not block others and is paid on retry."""
        earner, gold, _, vip = chain
        engine = CommissionDistributionEngine(session)
        credit_holding = engine.ledger.credit_holding

        async def flaky_credit(user_id, amount):
            if user_id == gold:
                raise IntegrityError("INSERT", {}, Exception("simulated"))
            return await credit_holding(user_id, amount)

        engine.ledger.credit_holding = flaky_credit
        result = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-retry"
        )

        assert [f.level for f in result.failed_levels] == [1]
        assert result.failed_levels[0].sponsor_id == gold
        assert [c.level for c in result.commissions] == [3]
        assert await holding_of(session, gold) is None
        assert await ledger_count(session) == 1

        engine.ledger.credit_holding = credit_holding
        retry = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-retry"
        )

        assert [c.level for c in retry.commissions] == [1]
        assert await holding_of(session, gold) == Decimal("100")
        assert await holding_of(session, vip) == Decimal("30")

    @pytest.mark.asyncio
    async def test_lost_connection_keeps_paid_levels(self, session, chain):
        """Test that levels paid before a lost connection stay committed."""
        earner, gold, _, vip = chain
        engine = CommissionDistributionEngine(session)
        credit_holding = engine.ledger.credit_holding

        async def lost_at_vip(user_id, amount):
            if user_id == vip:
                raise DBAPIError(
                    "UPDATE", {}, Exception("server closed"), connection_invalidated=True
                )
            return await credit_holding(user_id, amount)

        engine.ledger.credit_holding = lost_at_vip

        with pytest.raises(LedgerUnavailableError):
            await engine.distribute(
                earner, Decimal("1000"), "badge_purchase", event_id="evt-lost"
            )

        entries = await LedgerRepository(session).find_by_event("evt-lost")
        assert [(e.level, e.sponsor_id) for e in entries] == [(1, gold)]
        assert await holding_of(session, gold) == Decimal("100")
        assert await holding_of(session, vip) is None

        engine.ledger.credit_holding = credit_holding
        retry = await engine.distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-lost"
        )

        assert [c.level for c in retry.commissions] == [3]
        assert retry.skipped[0].reason == SkipReason.ALREADY_PAID
        assert await holding_of(session, gold) == Decimal("100")
        assert await holding_of(session, vip) == Decimal("30")

    @pytest.mark.asyncio
    async def test_lost_connection_at_first_level(self, session, chain):
        """Test that a lost connection before any payment writes nothing."""
        earner = chain[0]
        engine = CommissionDistributionEngine(session)

        async def lost_connection(user_id, amount):
            raise DBAPIError(
                "UPDATE", {}, Exception("server closed"), connection_invalidated=True
            )

        engine.ledger.credit_holding = lost_connection

        with pytest.raises(LedgerUnavailableError):
            await engine.distribute(
                earner, Decimal("1000"), "badge_purchase", event_id="evt-lost"
            )

        assert await ledger_count(session) == 0


class TestThresholdNames:
    """Test admin thresholds stored under any badge spelling."""

    @pytest.mark.asyncio
    async def test_upper_case_threshold_locks_level(
        self, session, user_ids, build_tree, give_badge, set_threshold,
        configure_commissions,
    ):
        """Test that a SILVER row limits a Silver sponsor."""
        earner, gold, silver = user_ids(3)
        await build_tree([earner, gold, silver])
        await give_badge(gold, "Gold")
        await give_badge(silver, "Silver")
        await set_threshold("SILVER", 1)
        await configure_commissions({1: "10", 2: "5"})

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-silver"
        )

        assert [(c.level, c.amount) for c in result.commissions] == [
            (1, Decimal("100"))
        ]
        assert result.skipped[0].reason == SkipReason.LEVEL_LOCKED
        assert result.skipped[0].unlocked_levels == 1
        assert await holding_of(session, silver) is None

    @pytest.mark.asyncio
    async def test_vip_variant_threshold_locks_level(
        self, session, chain, set_threshold
    ):
        """Test that a VIP i-SMART row limits an i-Smart VIP sponsor."""
        earner, gold, _, vip = chain
        await set_threshold("VIP i-SMART", 2)

        result = await CommissionDistributionEngine(session).distribute(
            earner, Decimal("1000"), "badge_purchase", event_id="evt-vip"
        )

        assert [(c.level, c.amount) for c in result.commissions] == [
            (1, Decimal("100"))
        ]
        assert [s.level for s in result.skipped] == [2, 3]
        assert result.skipped[1].unlocked_levels == 2
        assert await holding_of(session, vip) is None
