"""
Commission services.

Multi-level commission distribution and its rate table.
"""

from referral_engine.services.commission.distribution_engine import (
    CommissionDistributionEngine,
    DistributionReason,
    DistributionResult,
    FailedLevel,
    LevelCommission,
    SkippedLevel,
    SkipReason,
)
from referral_engine.services.commission.rate_table import (
    CommissionQuote,
    CommissionRateTable,
)

__all__ = [
    "CommissionDistributionEngine",
    "CommissionQuote",
    "CommissionRateTable",
    "DistributionReason",
    "DistributionResult",
    "FailedLevel",
    "LevelCommission",
    "SkippedLevel",
    "SkipReason",
]
