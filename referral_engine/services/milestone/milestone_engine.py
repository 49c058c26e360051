"""
VIP milestone engine.

Counts a VIP sponsor's direct VIP referrals and pays every crossed
milestone exactly once into the withdrawable pool.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.models.ledger import BalanceDestination, CommissionType
from referral_engine.models.milestone import MilestoneDefinition
from referral_engine.repositories.badge_repository import BadgeRepository
from referral_engine.repositories.milestone_repository import MilestoneRepository
from referral_engine.repositories.referral_tree_repository import (
    ReferralTreeRepository,
)
from referral_engine.services.badge_policy import BadgePolicy, normalize_badge_name
from referral_engine.services.balance_ledger import BalanceLedger
from referral_engine.services.base_service import BaseService, transaction
from referral_engine.utils.exceptions import (
    MUST_LOG,
    LedgerUnavailableError,
    is_connection_lost,
    is_store_unavailable,
)
from referral_engine.utils.money import round_down


# Milestones are not tied to a tree level
MILESTONE_LEVEL = 0


class MilestoneReason(str, Enum):
    """Why an evaluation paid nothing."""

    SPONSOR_NOT_VIP = "sponsor_not_vip"


@dataclass
class AchievedMilestone:
    """A milestone paid by this evaluation."""

    milestone_id: int
    vip_count_threshold: int
    bsk_rewarded: Decimal
    reward_description: str | None = None


@dataclass
class MilestoneResult:
    """Result of one milestone evaluation."""

    success: bool
    current_vip_count: int = 0
    milestones_achieved: list[AchievedMilestone] = field(default_factory=list)
    total_rewarded: Decimal = Decimal("0")
    failed_milestones: list[int] = field(default_factory=list)
    reason: MilestoneReason | None = None


def milestone_event_id(sponsor_id: uuid.UUID, milestone_id: int) -> str:
    """Build the ledger event id of a milestone payment."""
    return f"vip_milestone:{sponsor_id}:{milestone_id}"


class MilestoneEngine(BaseService):
    """
    One-time VIP milestone rewards.

    Presence of a MilestoneClaim row means the milestone was paid; the
    VIP count is only used to find crossed thresholds.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize milestone engine.

        Args:
            session: Async database session
        """
        super().__init__(session)
        self.tree_repo = ReferralTreeRepository(session)
        self.badge_repo = BadgeRepository(session)
        self.milestone_repo = MilestoneRepository(session)
        self.badge_policy = BadgePolicy(session)
        self.ledger = BalanceLedger(session)

    async def evaluate_milestones(
        self,
        sponsor_id: uuid.UUID,
        trigger_referral_id: uuid.UUID | None = None,
    ) -> MilestoneResult:
        """
        Evaluate and pay newly crossed milestones of a sponsor.

        Args:
            sponsor_id: Sponsor to evaluate
            trigger_referral_id: Referral whose badge purchase triggered the
                evaluation (recorded in ledger metadata)

        Returns:
            MilestoneResult with newly achieved milestones in threshold order

        Raises:
            LedgerUnavailableError: If the store cannot be reached
        """
        try:
            return await self._evaluate(sponsor_id, trigger_referral_id)
        except SQLAlchemyError as e:
            if is_store_unavailable(e):
                raise LedgerUnavailableError(
                    "Milestone store unreachable"
                ) from e
            raise

    @transaction
    async def _evaluate(
        self,
        sponsor_id: uuid.UUID,
        trigger_referral_id: uuid.UUID | None,
    ) -> MilestoneResult:
        sponsor_badge = await self.badge_policy.get_current_badge(sponsor_id)
        if not BadgePolicy.is_qualifying(sponsor_badge):
            self.logger.debug(
                "Sponsor not eligible for milestone rewards",
                extra={"sponsor_id": str(sponsor_id), "badge": sponsor_badge},
            )
            return MilestoneResult(
                success=True, reason=MilestoneReason.SPONSOR_NOT_VIP
            )

        vip_count = await self.count_direct_vip_referrals(sponsor_id)
        definitions = await self.milestone_repo.get_active_definitions()
        result = MilestoneResult(success=True, current_vip_count=vip_count)

        for definition in definitions:
            if vip_count < definition.vip_count_threshold:
                break

            if await self.milestone_repo.has_claim(sponsor_id, definition.id):
                continue

            try:
                async with self.session.begin_nested():
                    achieved = await self._pay_milestone(
                        sponsor_id=sponsor_id,
                        definition=definition,
                        vip_count=vip_count,
                        sponsor_badge=sponsor_badge,
                        trigger_referral_id=trigger_referral_id,
                    )
            except IntegrityError:
                self.logger.info(
                    "Milestone claimed concurrently, skipping",
                    extra={
                        "sponsor_id": str(sponsor_id),
                        "milestone_id": definition.id,
                    },
                )
                continue
            except MUST_LOG as e:
                if is_connection_lost(e):
                    raise LedgerUnavailableError(
                        f"Connection lost while paying milestone {definition.id}"
                    ) from e
                self.logger.error(
                    "Milestone payment failed",
                    extra={
                        "sponsor_id": str(sponsor_id),
                        "milestone_id": definition.id,
                        "error": str(e),
                    },
                )
                result.failed_milestones.append(definition.id)
                continue

            if achieved is not None:
                result.milestones_achieved.append(achieved)
                result.total_rewarded += achieved.bsk_rewarded

        if result.milestones_achieved:
            self.logger.info(
                f"{len(result.milestones_achieved)} milestone(s) achieved",
                extra={
                    "sponsor_id": str(sponsor_id),
                    "vip_count": vip_count,
                    "total": str(result.total_rewarded),
                },
            )

        return result

    async def count_direct_vip_referrals(self, sponsor_id: uuid.UUID) -> int:
        """
        Count level-1 referrals whose current badge is VIP.

        Args:
            sponsor_id: Sponsor ID

        Returns:
            Number of qualifying direct referrals
        """
        referral_ids = await self.tree_repo.get_direct_referral_ids(sponsor_id)
        if not referral_ids:
            return 0

        badges = await self.badge_repo.get_current_badges(referral_ids)
        return sum(
            1
            for badge in badges.values()
            if BadgePolicy.is_qualifying(normalize_badge_name(badge))
        )

    async def _pay_milestone(
        self,
        *,
        sponsor_id: uuid.UUID,
        definition: MilestoneDefinition,
        vip_count: int,
        sponsor_badge: str | None,
        trigger_referral_id: uuid.UUID | None,
    ) -> AchievedMilestone | None:
        """
        Claim, credit and record one milestone.

        Must run inside a savepoint: all four writes land or none do.

        Raises:
            IntegrityError: If the claim already exists
        """
        reward = round_down(Decimal(definition.reward_inr_value))

        await self.milestone_repo.create_claim(
            sponsor_id, definition.id, vip_count, reward
        )

        meta = {
            "milestone_id": definition.id,
            "vip_count": vip_count,
            "required_count": definition.vip_count_threshold,
            "trigger_referral_id": trigger_referral_id,
        }

        entry_id = await self.ledger.append_commission_entry(
            event_id=milestone_event_id(sponsor_id, definition.id),
            sponsor_id=sponsor_id,
            referee_id=trigger_referral_id,
            level=MILESTONE_LEVEL,
            commission_bsk=reward,
            earning_type=f"vip_milestone_{definition.vip_count_threshold}",
            commission_type=CommissionType.VIP_MILESTONE.value,
            destination=BalanceDestination.WITHDRAWABLE.value,
            base_amount=reward,
            commission_percent=Decimal("0"),
            sponsor_badge_at_event=sponsor_badge,
            meta=meta,
        )
        if entry_id is None:
            # Paid before claims were recorded: keep the claim, do not pay again
            self.logger.warning(
                "Milestone ledger entry exists without claim, recording claim only",
                extra={
                    "sponsor_id": str(sponsor_id),
                    "milestone_id": definition.id,
                },
            )
            return None

        if reward > 0:
            await self.ledger.credit_withdrawable(sponsor_id, reward)

        await self.ledger.append_bonus_entry(
            sponsor_id,
            CommissionType.VIP_MILESTONE.value,
            reward,
            meta=meta,
        )

        self.logger.info(
            "VIP milestone rewarded",
            extra={
                "sponsor_id": str(sponsor_id),
                "milestone_id": definition.id,
                "threshold": definition.vip_count_threshold,
                "reward": str(reward),
            },
        )

        return AchievedMilestone(
            milestone_id=definition.id,
            vip_count_threshold=definition.vip_count_threshold,
            bsk_rewarded=reward,
            reward_description=definition.reward_description,
        )
