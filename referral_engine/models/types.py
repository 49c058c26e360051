"""
Standard type definitions for database models.

Provides consistent types for monetary and percentage fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, balances, commissions
# Precision: 18 digits total, 8 after decimal point
# Suitable for: BSK amounts, balances, rewards
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Precise rate percentage type for commission rates
# Precision: 10 digits total, 4 after decimal point
# Suitable for: per-level percentages (e.g., 5.0000 meaning 5%)
# Range: 0.0000 to 999999.9999
RatePercentType = DECIMAL(10, 4)

# Multiplier type for payout multipliers
# Precision: 6 digits total, 2 after decimal point
# Range: 0.00 to 9999.99
MultiplierType = DECIMAL(6, 2)
