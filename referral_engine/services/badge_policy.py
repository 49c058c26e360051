"""
Badge policy.

Normalizes badge names and resolves how many commission levels a user's
current badge unlocks. Badges are always read fresh; a badge can change
between two events.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.config.badges import (
    BADGE_TIERS,
    MAX_UNLOCK_LEVELS,
    VIP_MARKERS,
    BadgeTier,
    get_default_unlock_levels,
)
from referral_engine.config.settings import settings
from referral_engine.repositories.badge_repository import BadgeRepository


def normalize_badge_name(badge_name: str | None) -> str | None:
    """
    Map a raw badge name to its canonical form.

    "i-Smart VIP", "VIP i-SMART" and "I-SMART VIP" all become "VIP";
    known tiers are matched case-insensitively ("GOLD" -> "Gold");
    anything else is returned stripped.

    Args:
        badge_name: Raw badge name as stored by the purchase flow

    Returns:
        Canonical badge name, or None for an empty/missing badge
    """
    if badge_name is None:
        return None

    stripped = badge_name.strip()
    if not stripped:
        return None

    upper = stripped.upper()
    if any(marker in upper for marker in VIP_MARKERS):
        return BadgeTier.VIP.value

    for config in BADGE_TIERS.values():
        if config.tier.value.upper() == upper:
            return config.tier.value

    return stripped


class BadgePolicy:
    """Resolves unlock levels and milestone eligibility from badges."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize badge policy."""
        self.session = session
        self.badge_repo = BadgeRepository(session)

    async def get_current_badge(self, user_id: uuid.UUID) -> str | None:
        """
        Get the canonical current badge of a user.

        Args:
            user_id: User ID

        Returns:
            Canonical badge name or None
        """
        raw = await self.badge_repo.get_current_badge(user_id)
        return normalize_badge_name(raw)

    async def get_thresholds(self) -> dict[str, int]:
        """
        Load active threshold rows keyed by canonical badge name.

        Rows whose names normalize to the same badge ("VIP", "VIP i-SMART")
        resolve to the most recently edited one.

        Returns:
            Mapping of canonical badge name to unlock levels
        """
        thresholds: dict[str, int] = {}
        for row in await self.badge_repo.get_active_thresholds():
            badge = normalize_badge_name(row.badge_name)
            if badge is not None:
                thresholds[badge] = row.unlock_levels
        return thresholds

    async def unlock_levels_for_badge(self, badge: str | None) -> int:
        """
        Resolve unlock levels for a canonical badge.

        Lookup order: active threshold row, static tier default, then
        settings.default_unlock_levels for missing or unrecognised badges.

        Args:
            badge: Canonical badge name or None

        Returns:
            Unlocked levels, clamped to 1..50
        """
        levels: int | None = None

        if badge is not None:
            thresholds = await self.get_thresholds()
            levels = thresholds.get(badge)
            if levels is None:
                levels = get_default_unlock_levels(badge)

        if levels is None:
            levels = settings.default_unlock_levels

        return max(1, min(levels, MAX_UNLOCK_LEVELS))

    async def resolve_unlock_levels(
        self, user_id: uuid.UUID
    ) -> tuple[str | None, int]:
        """
        Resolve the current badge and unlock levels of a user.

        Args:
            user_id: User ID

        Returns:
            Tuple of (canonical badge, unlocked levels)
        """
        badge = await self.get_current_badge(user_id)
        return badge, await self.unlock_levels_for_badge(badge)

    @staticmethod
    def is_qualifying(badge: str | None) -> bool:
        """Check whether a canonical badge qualifies for milestones."""
        return badge is not None and badge == settings.milestone_qualifying_badge
