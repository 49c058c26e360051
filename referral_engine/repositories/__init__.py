"""
Repositories.

Data access layer.
"""

from referral_engine.repositories.badge_repository import BadgeRepository
from referral_engine.repositories.balance_repository import BalanceRepository
from referral_engine.repositories.base import BaseRepository
from referral_engine.repositories.commission_settings_repository import (
    CommissionSettingsRepository,
)
from referral_engine.repositories.ledger_repository import LedgerRepository
from referral_engine.repositories.milestone_repository import MilestoneRepository
from referral_engine.repositories.referral_tree_repository import (
    ReferralTreeRepository,
)
from referral_engine.repositories.sponsor_link_repository import (
    SponsorLinkRepository,
)

__all__ = [
    "BaseRepository",
    "BadgeRepository",
    "BalanceRepository",
    "CommissionSettingsRepository",
    "LedgerRepository",
    "MilestoneRepository",
    "ReferralTreeRepository",
    "SponsorLinkRepository",
]
