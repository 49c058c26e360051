"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from referral_engine.services.badge_policy import BadgePolicy, normalize_badge_name
from referral_engine.services.balance_ledger import BalanceLedger
from referral_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Engines
from referral_engine.services.commission import (
    CommissionDistributionEngine,
    CommissionRateTable,
    DistributionResult,
)
from referral_engine.services.milestone import MilestoneEngine, MilestoneResult

# Maintenance
from referral_engine.services.referral_audit import (
    AuditReport,
    ReferralAuditService,
)
from referral_engine.services.referral_tree_builder import ReferralTreeBuilder

__all__ = [
    "AuditReport",
    "BadgePolicy",
    "BalanceLedger",
    "BaseService",
    "CommissionDistributionEngine",
    "CommissionRateTable",
    "DistributionResult",
    "MilestoneEngine",
    "MilestoneResult",
    "ReferralAuditService",
    "ReferralTreeBuilder",
    "log_operation",
    "normalize_badge_name",
    "transaction",
]
