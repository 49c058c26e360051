"""Milestone services."""

from referral_engine.services.milestone.milestone_engine import (
    AchievedMilestone,
    MilestoneEngine,
    MilestoneReason,
    MilestoneResult,
    milestone_event_id,
)

__all__ = [
    "AchievedMilestone",
    "MilestoneEngine",
    "MilestoneReason",
    "MilestoneResult",
    "milestone_event_id",
]
