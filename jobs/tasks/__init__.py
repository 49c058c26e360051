"""
Dramatiq tasks.

Importing this package registers every actor with the broker.
"""

from jobs.tasks.commission_distribution import distribute_commissions
from jobs.tasks.milestone_evaluation import evaluate_vip_milestones
from jobs.tasks.referral_audit import run_referral_audit

__all__ = [
    "distribute_commissions",
    "evaluate_vip_milestones",
    "run_referral_audit",
]
