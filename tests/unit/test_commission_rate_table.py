"""
Unit tests for commission amount calculation.

Tests cover:
- Basic percent calculation
- Round-down to 8 decimals
- Per-level cap
- VIP multiplier
- Applied terms reported with each amount
"""

from decimal import Decimal

import pytest

from referral_engine.services.commission.rate_table import CommissionRateTable
from referral_engine.utils.money import BSK_QUANTUM


@pytest.fixture
def rate_table():
    """Rate table {1: 10%, 2: 5%, 3: 3%} without cap."""
    return CommissionRateTable(
        max_levels=50,
        rates={1: Decimal("10"), 2: Decimal("5"), 3: Decimal("3")},
    )


class TestCommissionCalculation:
    """Test per-level commission amounts."""

    def test_level_1(self, rate_table):
        """Test 10% of 1000."""
        assert rate_table.calculate(Decimal("1000"), 1) == Decimal("100")

    def test_level_3(self, rate_table):
        """Test 3% of 1000."""
        assert rate_table.calculate(Decimal("1000"), 3) == Decimal("30")

    def test_unconfigured_level_pays_nothing(self, rate_table):
        """Test that levels without rate pay zero."""
        assert rate_table.rate_for(4) == Decimal("0")
        assert rate_table.calculate(Decimal("1000"), 4) == Decimal("0")

    def test_non_positive_base(self, rate_table):
        """Test that a zero base pays zero."""
        assert rate_table.calculate(Decimal("0"), 1) == Decimal("0")


class TestRounding:
    """Test round-down to 8 decimals."""

    @pytest.mark.parametrize(
        "amount, percent",
        [
            ("0.00000001", "10"),
            ("1", "3.3333"),
            ("123.45678901", "7.5"),
            ("99999.99999999", "0.0001"),
            ("0.33333333", "33.3333"),
        ],
    )
    def test_never_exceeds_exact_value(self, amount, percent):
        """Test that rounded payouts never exceed the exact result."""
        table = CommissionRateTable(max_levels=1, rates={1: Decimal(percent)})
        exact = Decimal(amount) * Decimal(percent) / Decimal("100")

        paid = table.calculate(Decimal(amount), 1)

        assert paid <= exact
        assert exact - paid < BSK_QUANTUM
        assert paid == paid.quantize(BSK_QUANTUM)

    def test_dust_rounds_to_zero(self):
        """Test that sub-quantum commissions become zero."""
        table = CommissionRateTable(max_levels=1, rates={1: Decimal("10")})
        assert table.calculate(Decimal("0.00000001"), 1) == Decimal("0")


class TestCapAndMultiplier:
    """Test cap and VIP multiplier."""

    def test_cap_limits_level_payout(self):
        """Test that a payout above the cap is reduced to the cap."""
        table = CommissionRateTable(
            max_levels=1, rates={1: Decimal("10")}, cap=Decimal("50")
        )
        assert table.calculate(Decimal("1000"), 1) == Decimal("50")

    def test_cap_not_reached(self):
        """Test that payouts below the cap are untouched."""
        table = CommissionRateTable(
            max_levels=1, rates={1: Decimal("10")}, cap=Decimal("500")
        )
        assert table.calculate(Decimal("1000"), 1) == Decimal("100")

    def test_vip_multiplier_applies_to_vip(self):
        """Test that VIP sponsors get the multiplier."""
        table = CommissionRateTable(
            max_levels=1, rates={1: Decimal("10")}, vip_multiplier=Decimal("1.5")
        )
        assert table.calculate(Decimal("1000"), 1, "VIP") == Decimal("150")
        assert table.calculate(Decimal("1000"), 1, "Gold") == Decimal("100")

    def test_cap_applies_after_multiplier(self):
        """Test that the multiplied amount is still capped."""
        table = CommissionRateTable(
            max_levels=1,
            rates={1: Decimal("10")},
            cap=Decimal("120"),
            vip_multiplier=Decimal("2"),
        )
        assert table.calculate(Decimal("1000"), 1, "VIP") == Decimal("120")


class TestCommissionQuote:
    """Test the terms reported with each amount."""

    def test_capped_vip_quote(self):
        """Test that a capped VIP quote reports rate, multiplier and cap."""
        table = CommissionRateTable(
            max_levels=1,
            rates={1: Decimal("10")},
            cap=Decimal("120"),
            vip_multiplier=Decimal("2"),
        )

        quote = table.quote(Decimal("1000"), 1, "VIP")

        assert quote.amount == Decimal("120")
        assert quote.rate_percent == Decimal("10")
        assert quote.vip_multiplier == Decimal("2")
        assert quote.effective_percent == Decimal("20")
        assert quote.capped is True

    def test_plain_quote(self, rate_table):
        """Test that a non-VIP quote applies the rate only."""
        quote = rate_table.quote(Decimal("1000"), 2, "Gold")

        assert quote.amount == Decimal("50")
        assert quote.vip_multiplier == Decimal("1")
        assert quote.effective_percent == Decimal("5")
        assert quote.capped is False
