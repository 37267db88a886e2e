"""
Balance Calculator

A pure reduction from (members, expenses) to net balances.

Equal split: the payer is credited the full amount and every current
member, payer included, is debited amount / n.

Custom split: the payer is credited the full amount and each listed
member is debited their share. Shares are absolute amounts.

Sums are accumulated as exact fractions and converted to Decimal once at
the end, so the result does not depend on expense order.

Known limitation: splits always use the group's current membership, not
the membership at the time of the expense.
"""

from collections import defaultdict
from decimal import Decimal
from fractions import Fraction
from typing import Iterable

from groupledger.models.ledger import (
    BalanceSheet,
    ComputationIssue,
    Expense,
    IssueSeverity,
    Member,
    SplitMethod,
)


def _to_decimal(value: Fraction) -> Decimal:
    if value.denominator == 1:
        return Decimal(value.numerator)
    return Decimal(value.numerator) / Decimal(value.denominator)


def _equal_shares(expense: Expense, member_ids: list[str]) -> dict[str, Fraction]:
    share = Fraction(expense.amount) / len(member_ids)
    return {member_id: share for member_id in member_ids}


def _custom_shares(expense: Expense) -> dict[str, Fraction]:
    return {
        member_id: Fraction(share)
        for member_id, share in (expense.custom_split or {}).items()
    }


def compute_balances(
    members: Iterable[Member],
    expenses: Iterable[Expense],
    group_id: str = "",
) -> BalanceSheet:
    """
    Reduce a ledger to net balances.

    Args:
        members: The group's current members
        expenses: Every expense in the ledger, in any order
        group_id: Carried onto the result for reference

    Returns:
        BalanceSheet with one entry per current member (plus any payer who
        has since left). Expenses that can't be applied are listed in
        skipped_expense_ids with an issue explaining why.
    """
    member_ids = sorted({m.id for m in members})
    current = set(member_ids)

    totals: dict[str, Fraction] = defaultdict(Fraction)
    for member_id in member_ids:
        totals[member_id] = Fraction(0)

    issues: list[ComputationIssue] = []
    skipped: list[str] = []
    applied = 0

    for expense in sorted(expenses, key=lambda e: e.id):
        if expense.split_method == SplitMethod.EQUAL:
            if not member_ids:
                issues.append(ComputationIssue(
                    code="no_members",
                    message="Group has no members to split an equal expense between",
                    expense_id=expense.id,
                ))
                skipped.append(expense.id)
                continue
            shares = _equal_shares(expense, member_ids)
        else:
            unknown = sorted(set(expense.custom_split or {}) - current)
            if unknown or not expense.custom_split:
                issues.append(ComputationIssue(
                    code="unknown_split_member",
                    message=(
                        f"Custom split names non-members: {', '.join(unknown)}"
                        if unknown
                        else "Custom split has no shares"
                    ),
                    expense_id=expense.id,
                ))
                skipped.append(expense.id)
                continue
            shares = _custom_shares(expense)
            if sum(shares.values(), Fraction(0)) != Fraction(expense.amount):
                issues.append(ComputationIssue(
                    code="custom_split_total_mismatch",
                    message=(
                        f"Shares total {expense.custom_split_total}, "
                        f"expense amount is {expense.amount}"
                    ),
                    severity=IssueSeverity.WARNING,
                    expense_id=expense.id,
                ))

        if expense.paid_by not in current:
            issues.append(ComputationIssue(
                code="historical_payer",
                message=f"Payer {expense.paid_by} is no longer a group member",
                severity=IssueSeverity.INFO,
                expense_id=expense.id,
            ))

        totals[expense.paid_by] += Fraction(expense.amount)
        for member_id, share in shares.items():
            totals[member_id] -= share
        applied += 1

    return BalanceSheet(
        group_id=group_id,
        balances={member_id: _to_decimal(value) for member_id, value in sorted(totals.items())},
        issues=issues,
        expense_count=applied,
        skipped_expense_ids=skipped,
    )
