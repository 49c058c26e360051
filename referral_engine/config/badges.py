"""
Single source of truth for badge tiers.

Canonical badge names and the commission depth each tier unlocks when no
admin-edited threshold row overrides it.
"""

from enum import Enum
from typing import NamedTuple


# Commission depth limit for any tier and for the referral tree
MAX_UNLOCK_LEVELS = 50


class BadgeTier(str, Enum):
    """Canonical badge tiers."""

    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"
    VIP = "VIP"


class BadgeTierConfig(NamedTuple):
    """Static configuration of a badge tier."""

    tier: BadgeTier
    unlock_levels: int  # Commission levels unlocked (1-50)


BADGE_TIERS: dict[BadgeTier, BadgeTierConfig] = {
    BadgeTier.BRONZE: BadgeTierConfig(
        tier=BadgeTier.BRONZE,
        unlock_levels=5,
    ),
    BadgeTier.SILVER: BadgeTierConfig(
        tier=BadgeTier.SILVER,
        unlock_levels=10,
    ),
    BadgeTier.GOLD: BadgeTierConfig(
        tier=BadgeTier.GOLD,
        unlock_levels=20,
    ),
    BadgeTier.PLATINUM: BadgeTierConfig(
        tier=BadgeTier.PLATINUM,
        unlock_levels=30,
    ),
    BadgeTier.DIAMOND: BadgeTierConfig(
        tier=BadgeTier.DIAMOND,
        unlock_levels=40,
    ),
    BadgeTier.VIP: BadgeTierConfig(
        tier=BadgeTier.VIP,
        unlock_levels=MAX_UNLOCK_LEVELS,
    ),
}

# Substrings marking any VIP variant ("i-Smart VIP", "VIP i-SMART", ...)
VIP_MARKERS = ("VIP", "SMART")


def get_default_unlock_levels(badge_name: str) -> int | None:
    """
    Get static unlock levels for a canonical badge name.

    Args:
        badge_name: Canonical badge name

    Returns:
        Unlock levels or None if the name is not a known tier
    """
    for config in BADGE_TIERS.values():
        if config.tier.value == badge_name:
            return config.unlock_levels
    return None
