"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from referral_engine.models.badge import BadgeHolding, BadgeThreshold
from referral_engine.models.balance import BalanceAccount
from referral_engine.models.base import Base
from referral_engine.models.commission_settings import (
    CommissionLevelRate,
    CommissionSettings,
)
from referral_engine.models.ledger import (
    BalanceDestination,
    BonusLedgerEntry,
    CommissionLedgerEntry,
    CommissionType,
)
from referral_engine.models.milestone import MilestoneClaim, MilestoneDefinition
from referral_engine.models.referral_tree import ReferralEdge, SponsorLink

__all__ = [
    # Base
    "Base",
    # Enums
    "BalanceDestination",
    "CommissionType",
    # Referral tree
    "ReferralEdge",
    "SponsorLink",
    # Policy
    "BadgeHolding",
    "BadgeThreshold",
    "CommissionSettings",
    "CommissionLevelRate",
    # Ledger
    "BalanceAccount",
    "CommissionLedgerEntry",
    "BonusLedgerEntry",
    # Milestones
    "MilestoneDefinition",
    "MilestoneClaim",
]
