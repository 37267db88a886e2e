"""
Transfer Minimizer

Greedy settlement: repeatedly pay the largest debt toward the largest
credit until every balance is within epsilon of zero.

Ties break on magnitude first, then on the smaller member id, so the
same balances always produce the same transfers. The plan needs at most
(creditors + debtors - 1) transfers. That is not always the global
minimum.
"""

from decimal import Decimal
from typing import Optional

from groupledger.models.ledger import ReconciliationError, SettlementPlan, Transfer


DEFAULT_EPSILON = Decimal("0.000001")


def _largest(side: dict[str, Decimal]) -> str:
    member_id, _ = min(side.items(), key=lambda item: (-item[1], item[0]))
    return member_id


def minimize_transfers(
    balances: dict[str, Decimal],
    epsilon: Optional[Decimal] = None,
) -> SettlementPlan:
    """
    Turn net balances into a list of transfers that zeroes them.

    Args:
        balances: member id -> balance (positive is owed, negative owes)
        epsilon: Magnitudes at or below this count as zero

    Returns:
        SettlementPlan. If the balances don't sum to zero, the plan still
        carries the transfers for the part that could be matched, lists
        the leftovers in `unsettled` and sets `error`.
    """
    eps = DEFAULT_EPSILON if epsilon is None else epsilon
    residue = sum(balances.values(), Decimal("0"))

    creditors = {m: v for m, v in balances.items() if v > eps}
    debtors = {m: -v for m, v in balances.items() if v < -eps}

    transfers: list[Transfer] = []
    while creditors and debtors:
        creditor = _largest(creditors)
        debtor = _largest(debtors)
        amount = min(creditors[creditor], debtors[debtor])

        transfers.append(Transfer(from_member=debtor, to_member=creditor, amount=amount))

        creditors[creditor] -= amount
        debtors[debtor] -= amount
        if creditors[creditor] <= eps:
            del creditors[creditor]
        if debtors[debtor] <= eps:
            del debtors[debtor]

    unsettled = dict(creditors)
    unsettled.update({m: -v for m, v in debtors.items()})

    error = None
    if abs(residue) > eps:
        error = ReconciliationError(
            message=f"Balances sum to {residue}, not zero",
            residue=residue,
        )

    return SettlementPlan(
        transfers=transfers,
        residue=residue,
        unsettled=unsettled,
        error=error,
    )
