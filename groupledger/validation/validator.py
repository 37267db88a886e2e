"""
Expense Validation

Validation happens before an expense enters the ledger, in two stages:

STAGE 1 - SHAPE:
- Amount must be positive
- A custom split needs at least one share, none negative

STAGE 2 - MEMBERSHIP & CONSISTENCY:
- Acting member and payer must belong to the group
- Every custom split key must be a group member
- Custom shares should total the expense amount

Validation never fixes anything. It reports issues; only errors block
the write.

Custom split values are read as absolute amounts. Shares that total
about 1.0 on a larger expense look like ratios instead, and that is
flagged rather than reinterpreted.
"""

from decimal import Decimal
from typing import Optional

from groupledger.config import LedgerSettings, get_settings
from groupledger.models.ledger import (
    Expense,
    Group,
    IssueSeverity,
    SplitMethod,
    ValidationIssue,
    ValidationResult,
)


class ExpenseValidator:
    """Validates expenses against a group before they are stored."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_shape(self, expense: Expense) -> list[ValidationIssue]:
        issues = []

        if expense.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity=IssueSeverity.ERROR,
            ))

        if expense.split_method == SplitMethod.CUSTOM:
            if not expense.custom_split:
                issues.append(ValidationIssue(
                    field="custom_split",
                    issue_type="missing",
                    message="Custom split needs at least one member share",
                    severity=IssueSeverity.ERROR,
                ))
            else:
                negative = sorted(k for k, v in expense.custom_split.items() if v < 0)
                if negative:
                    issues.append(ValidationIssue(
                        field="custom_split",
                        issue_type="invalid_value",
                        message=f"Shares cannot be negative: {', '.join(negative)}",
                        severity=IssueSeverity.ERROR,
                    ))

        return issues

    def _validate_membership(
        self,
        group: Group,
        expense: Expense,
        actor_id: str,
    ) -> list[ValidationIssue]:
        issues = []
        member_ids = group.member_ids

        if actor_id not in member_ids:
            issues.append(ValidationIssue(
                field="actor_id",
                issue_type="actor_not_member",
                message=f"{actor_id} is not a member of this group",
                severity=IssueSeverity.ERROR,
            ))

        if expense.paid_by not in member_ids:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="not_a_member",
                message=f"Payer {expense.paid_by} is not a member of this group",
                severity=IssueSeverity.ERROR,
            ))

        if expense.split_method == SplitMethod.CUSTOM and expense.custom_split:
            unknown = sorted(set(expense.custom_split) - member_ids)
            if unknown:
                issues.append(ValidationIssue(
                    field="custom_split",
                    issue_type="not_a_member",
                    message=f"Split includes non-members: {', '.join(unknown)}",
                    severity=IssueSeverity.ERROR,
                ))

        return issues

    def _validate_custom_total(self, expense: Expense) -> list[ValidationIssue]:
        issues = []
        if expense.split_method != SplitMethod.CUSTOM or not expense.custom_split:
            return issues

        total = expense.custom_split_total
        tolerance = self._settings.custom_split_tolerance
        if abs(total - expense.amount) <= tolerance:
            return issues

        if abs(total - Decimal("1")) <= tolerance and expense.amount > Decimal("1"):
            issues.append(ValidationIssue(
                field="custom_split",
                issue_type="custom_split_looks_like_ratios",
                message=(
                    f"Shares total {total}, which looks like ratios; "
                    "shares are read as amounts owed"
                ),
                severity=IssueSeverity.WARNING,
            ))

        severity = (
            IssueSeverity.ERROR
            if self._settings.strict_custom_split_total
            else IssueSeverity.WARNING
        )
        issues.append(ValidationIssue(
            field="custom_split",
            issue_type="custom_split_total_mismatch",
            message=f"Shares total ({total}) doesn't equal expense amount ({expense.amount})",
            severity=severity,
        ))
        return issues

    def validate(
        self,
        group: Group,
        expense: Expense,
        actor_id: str,
    ) -> ValidationResult:
        """
        Run the full validation pipeline.

        Args:
            group: The group the expense is being added to
            expense: The expense to validate
            actor_id: Member performing the write

        Returns:
            ValidationResult with all issues found
        """
        issues = self._validate_shape(expense)
        issues.extend(self._validate_membership(group, expense, actor_id))

        # Totals only matter once the shape is sound
        if not any(i.severity == IssueSeverity.ERROR for i in issues):
            issues.extend(self._validate_custom_total(expense))

        return ValidationResult(expense_id=expense.id, issues=issues)
