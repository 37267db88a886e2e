"""
Tests for the transfer minimizer.
"""

from decimal import Decimal

from conftest import make_expense
from groupledger.engine import compute_balances, minimize_transfers
from groupledger.models.ledger import Transfer


def D(value: str) -> Decimal:
    return Decimal(value)


class TestMinimizeTransfers:
    """Tests for greedy settlement."""

    def test_one_creditor_two_debtors(self):
        """Test A +200, B -100, C -100."""
        plan = minimize_transfers({"A": D("200"), "B": D("-100"), "C": D("-100")})
        assert plan.transfers == [
            Transfer(from_member="B", to_member="A", amount=D("100")),
            Transfer(from_member="C", to_member="A", amount=D("100")),
        ]
        assert plan.error is None
        assert plan.is_settled

    def test_applying_plan_zeroes_balances(self):
        """Test that paying every transfer leaves nothing owed."""
        balances = {
            "A": D("45.50"),
            "B": D("-20.25"),
            "C": D("10"),
            "D": D("-35.25"),
        }
        plan = minimize_transfers(balances)
        after = plan.apply(balances)
        assert all(abs(v) <= D("0.000001") for v in after.values())
        assert len(plan.transfers) <= len(balances) - 1

    def test_largest_pairs_first(self):
        """Test the largest debtor pays the largest creditor first."""
        plan = minimize_transfers({"A": D("10"), "B": D("30"), "C": D("-25"), "D": D("-15")})
        assert plan.transfers[0] == Transfer(from_member="C", to_member="B", amount=D("25"))

    def test_ties_break_on_member_id(self):
        """Test equal magnitudes resolve to the smaller id."""
        plan = minimize_transfers({"Y": D("5"), "X": D("5"), "Q": D("-5"), "P": D("-5")})
        assert [(t.from_member, t.to_member) for t in plan.transfers] == [
            ("P", "X"),
            ("Q", "Y"),
        ]

    def test_same_input_same_plan(self):
        """Test that input ordering doesn't change the plan."""
        first = minimize_transfers({"A": D("3"), "B": D("-1"), "C": D("-2")})
        second = minimize_transfers({"C": D("-2"), "B": D("-1"), "A": D("3")})
        assert first.transfers == second.transfers

    def test_dust_is_ignored(self):
        """Test balances within epsilon produce no transfers."""
        plan = minimize_transfers({"A": D("0.0000005"), "B": D("-0.0000005")})
        assert plan.transfers == []
        assert plan.is_settled

    def test_custom_epsilon(self):
        plan = minimize_transfers({"A": D("0.004"), "B": D("-0.004")}, epsilon=D("0.005"))
        assert plan.transfers == []

    def test_empty_balances(self):
        plan = minimize_transfers({})
        assert plan.transfers == []
        assert plan.residue == D("0")
        assert plan.is_settled


class TestReconciliation:
    """Balances that don't sum to zero."""

    def test_nonzero_sum_reports_error(self):
        """Test a residue yields an error plus the unmatched leftovers."""
        plan = minimize_transfers({"A": D("60"), "B": D("-50")})
        assert plan.transfers == [Transfer(from_member="B", to_member="A", amount=D("50"))]
        assert plan.error is not None
        assert plan.error.residue == D("10")
        assert plan.unsettled == {"A": D("10")}
        assert not plan.is_settled

    def test_mismatched_custom_split_end_to_end(self, alice, bob):
        """Test a bad custom split surfaces as a reconciliation error."""
        sheet = compute_balances(
            [alice, bob],
            [make_expense("e1", "100", "A", {"A": "40", "B": "50"})],
        )
        plan = minimize_transfers(sheet.balances)
        assert plan.error is not None
        assert plan.error.residue == D("10")

    def test_ledger_end_to_end(self, group):
        """Test A pays 300 equally; B and C each owe A 100."""
        sheet = compute_balances(group.members, [make_expense("e1", "300", "A")])
        plan = minimize_transfers(sheet.balances)
        assert [(t.from_member, t.to_member, t.amount) for t in plan.transfers] == [
            ("B", "A", D("100")),
            ("C", "A", D("100")),
        ]
