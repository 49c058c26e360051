"""
Referral audit service.

Periodic consistency check of referral trees, balances and the commission
ledger, with optional repair of missing trees.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.config.settings import settings
from referral_engine.models.ledger import BalanceDestination
from referral_engine.repositories.balance_repository import BalanceRepository
from referral_engine.repositories.ledger_repository import LedgerRepository
from referral_engine.repositories.referral_tree_repository import (
    ReferralTreeRepository,
)
from referral_engine.repositories.sponsor_link_repository import (
    SponsorLinkRepository,
)
from referral_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from referral_engine.services.referral_tree_builder import ReferralTreeBuilder
from referral_engine.utils.exceptions import MUST_LOG
from referral_engine.utils.money import round_down


class AuditSeverity(str, Enum):
    """Audit issue severity."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditIssueType(str, Enum):
    """Kinds of inconsistencies the audit detects."""

    MISSING_REFERRAL_TREE = "missing_referral_tree"
    MISSING_LEVEL_1 = "missing_level_1"
    LEVEL_1_MISMATCH = "level_1_mismatch"
    INVALID_BALANCE = "invalid_balance"
    LEDGER_MISMATCH = "ledger_mismatch"


@dataclass
class AuditIssue:
    """One detected inconsistency."""

    issue_type: AuditIssueType
    severity: AuditSeverity
    user_id: uuid.UUID
    details: dict[str, Any] = field(default_factory=dict)
    auto_fixed: bool = False


@dataclass
class AuditReport:
    """Audit summary; issues is truncated, counts are not."""

    total_issues: int
    auto_fixed: int
    issues_by_severity: dict[str, int]
    issues: list[AuditIssue]
    started_at: datetime


class ReferralAuditService(BaseService):
    """Detects and optionally repairs referral data inconsistencies."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize audit service.

        Args:
            session: Async database session
        """
        super().__init__(session)
        self.tree_repo = ReferralTreeRepository(session)
        self.link_repo = SponsorLinkRepository(session)
        self.balance_repo = BalanceRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.tree_builder = ReferralTreeBuilder(session)

    @log_operation
    @transaction
    async def run(self, auto_fix: bool = True) -> AuditReport:
        """
        Run every audit check.

        Args:
            auto_fix: Rebuild missing referral trees

        Returns:
            AuditReport with the first audit_report_limit issues
        """
        started_at = datetime.now(UTC)
        issues: list[AuditIssue] = []

        unresolved = await self._check_missing_trees(issues, auto_fix)
        await self._check_level_one(issues, skip=unresolved)
        await self._check_balances(issues)
        await self._check_ledger(issues)

        by_severity = {severity.value: 0 for severity in AuditSeverity}
        for issue in issues:
            by_severity[issue.severity.value] += 1

        report = AuditReport(
            total_issues=len(issues),
            auto_fixed=sum(1 for issue in issues if issue.auto_fixed),
            issues_by_severity=by_severity,
            issues=issues[: settings.audit_report_limit],
            started_at=started_at,
        )

        log = self.logger.warning if by_severity["critical"] else self.logger.info
        log(
            "Referral audit complete",
            extra={
                "total_issues": report.total_issues,
                "auto_fixed": report.auto_fixed,
                "critical": by_severity["critical"],
                "error": by_severity["error"],
                "warning": by_severity["warning"],
            },
        )
        return report

    async def _check_missing_trees(
        self, issues: list[AuditIssue], auto_fix: bool
    ) -> set[uuid.UUID]:
        """
        Find locked sponsor links without tree rows.

        Returns:
            Users whose tree is still missing after the check
        """
        unresolved: set[uuid.UUID] = set()

        for link in await self.link_repo.find_locked_without_tree():
            issue = AuditIssue(
                issue_type=AuditIssueType.MISSING_REFERRAL_TREE,
                severity=AuditSeverity.CRITICAL,
                user_id=link.user_id,
                details={"sponsor_id": str(link.sponsor_id)},
            )
            issues.append(issue)

            if not auto_fix:
                unresolved.add(link.user_id)
                continue

            try:
                async with self.session.begin_nested():
                    levels = await self.tree_builder.rebuild_tree(link.user_id)
            except MUST_LOG as e:
                self.logger.error(
                    "Failed to rebuild referral tree",
                    extra={"user_id": str(link.user_id), "error": str(e)},
                )
                unresolved.add(link.user_id)
                continue

            issue.auto_fixed = levels > 0
            issue.details["levels_created"] = levels
            if not issue.auto_fixed:
                unresolved.add(link.user_id)

        return unresolved

    async def _check_level_one(
        self, issues: list[AuditIssue], skip: set[uuid.UUID]
    ) -> None:
        """Compare each locked sponsor with the level-1 tree ancestor."""
        for link in await self.link_repo.find_locked():
            if link.user_id in skip:
                continue

            edge = await self.tree_repo.get_level_one(link.user_id)
            if edge is None:
                issues.append(
                    AuditIssue(
                        issue_type=AuditIssueType.MISSING_LEVEL_1,
                        severity=AuditSeverity.ERROR,
                        user_id=link.user_id,
                        details={"expected_sponsor": str(link.sponsor_id)},
                    )
                )
            elif edge.ancestor_id != link.sponsor_id:
                issues.append(
                    AuditIssue(
                        issue_type=AuditIssueType.LEVEL_1_MISMATCH,
                        severity=AuditSeverity.ERROR,
                        user_id=link.user_id,
                        details={
                            "expected_sponsor": str(link.sponsor_id),
                            "tree_sponsor": str(edge.ancestor_id),
                        },
                    )
                )

    async def _check_balances(self, issues: list[AuditIssue]) -> None:
        """Flag accounts whose balance exceeds what they ever earned."""
        for account in await self.balance_repo.find_inconsistent():
            issues.append(
                AuditIssue(
                    issue_type=AuditIssueType.INVALID_BALANCE,
                    severity=AuditSeverity.CRITICAL,
                    user_id=account.user_id,
                    details={
                        "holding_balance": str(account.holding_balance),
                        "total_earned_holding": str(account.total_earned_holding),
                        "withdrawable_balance": str(account.withdrawable_balance),
                        "total_earned_withdrawable": str(
                            account.total_earned_withdrawable
                        ),
                    },
                )
            )

    async def _check_ledger(self, issues: list[AuditIssue]) -> None:
        """Flag pools that received less than the ledger says was paid."""
        totals = await self.ledger_repo.sum_by_sponsor_and_destination()

        for (sponsor_id, destination), ledger_total in totals.items():
            account = await self.balance_repo.get_account(sponsor_id)
            if account is None:
                earned = Decimal("0")
            elif destination == BalanceDestination.WITHDRAWABLE.value:
                earned = Decimal(account.total_earned_withdrawable)
            else:
                earned = Decimal(account.total_earned_holding)

            ledger_total = round_down(ledger_total)
            if ledger_total > earned:
                issues.append(
                    AuditIssue(
                        issue_type=AuditIssueType.LEDGER_MISMATCH,
                        severity=AuditSeverity.WARNING,
                        user_id=sponsor_id,
                        details={
                            "destination": destination,
                            "ledger_total": str(ledger_total),
                            "total_earned": str(earned),
                            "missing": str(ledger_total - earned),
                        },
                    )
                )
