"""
Money helpers.

BSK amounts carry 8 fractional digits and are always rounded down, so a
payout never exceeds the exact configured rate.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation


# Smallest representable BSK unit
BSK_QUANTUM = Decimal("0.00000001")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a value to Decimal without float artefacts.

    Args:
        value: Numeric value or numeric string

    Returns:
        Decimal value

    Raises:
        ValueError: If value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a numeric amount: {value!r}") from e


def round_down(amount: Decimal) -> Decimal:
    """Quantize amount to 8 decimals, rounding toward zero."""
    return amount.quantize(BSK_QUANTUM, rounding=ROUND_DOWN)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """
    Calculate percent of amount, rounded down to 8 decimals.

    Args:
        amount: Base amount
        percent: Plain percent value (5 means 5%)

    Returns:
        amount * percent / 100, never above the exact value
    """
    return round_down(amount * percent / Decimal("100"))
