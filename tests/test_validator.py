"""
Tests for expense validation.
"""

import pytest

from conftest import make_expense
from groupledger.config import LedgerSettings
from groupledger.models.ledger import IssueSeverity
from groupledger.validation import ExpenseValidator


@pytest.fixture
def validator(ledger_settings):
    return ExpenseValidator(ledger_settings)


def issue_types(result) -> set[str]:
    return {i.issue_type for i in result.issues}


class TestShapeValidation:
    """Stage 1 checks."""

    def test_valid_equal_expense(self, validator, group):
        result = validator.validate(group, make_expense("e1", "30", "A"), "B")
        assert result.is_valid
        assert result.issues == []

    def test_zero_amount_rejected(self, validator, group):
        """Test that zero is decodable but not writable."""
        result = validator.validate(group, make_expense("e1", "0", "A"), "A")
        assert not result.is_valid
        assert "invalid_value" in issue_types(result)

    def test_empty_custom_split_rejected(self, validator, group):
        result = validator.validate(group, make_expense("e1", "30", "A", {}), "A")
        assert "missing" in issue_types(result)

    def test_negative_share_rejected(self, validator, group):
        result = validator.validate(
            group,
            make_expense("e1", "30", "A", {"A": "40", "B": "-10"}),
            "A",
        )
        assert not result.is_valid
        assert "invalid_value" in issue_types(result)


class TestMembershipValidation:
    """Stage 2 membership checks."""

    def test_actor_must_be_member(self, validator, group):
        """Test that outsiders can't write to a group."""
        result = validator.validate(group, make_expense("e1", "30", "A"), "Z")
        assert not result.is_valid
        assert issue_types(result) == {"actor_not_member"}

    def test_payer_must_be_member(self, validator, group):
        result = validator.validate(group, make_expense("e1", "30", "Z"), "A")
        assert not result.is_valid
        assert result.issues[0].field == "paid_by"

    def test_split_keys_must_be_members(self, validator, group):
        result = validator.validate(
            group,
            make_expense("e1", "30", "A", {"A": "10", "Z": "20"}),
            "A",
        )
        assert not result.is_valid
        assert result.issues[0].issue_type == "not_a_member"
        assert "Z" in result.issues[0].message


class TestCustomTotalValidation:
    """Stage 2 consistency checks for custom shares."""

    def test_matching_total_passes(self, validator, group):
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "40", "B": "60"}),
            "A",
        )
        assert result.issues == []

    def test_total_within_tolerance_passes(self, validator, group):
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "33.33", "B": "33.33", "C": "33.33"}),
            "A",
        )
        assert result.issues == []

    def test_mismatch_is_warning_by_default(self, validator, group):
        """Test a short split is written with a warning."""
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "40", "B": "50"}),
            "A",
        )
        assert result.is_valid
        assert issue_types(result) == {"custom_split_total_mismatch"}
        assert result.warnings

    def test_mismatch_is_error_when_strict(self, group):
        validator = ExpenseValidator(
            LedgerSettings(_env_file=None, strict_custom_split_total=True)
        )
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "40", "B": "50"}),
            "A",
        )
        assert not result.is_valid

    def test_ratio_shaped_split_flagged(self, validator, group):
        """Test shares that look like fractions of one get a hint."""
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "0.4", "B": "0.6"}),
            "A",
        )
        assert issue_types(result) == {
            "custom_split_looks_like_ratios",
            "custom_split_total_mismatch",
        }
        assert all(i.severity == IssueSeverity.WARNING for i in result.issues)

    def test_totals_skipped_when_shape_is_wrong(self, validator, group):
        """Test that a non-member share doesn't also produce a total warning."""
        result = validator.validate(
            group,
            make_expense("e1", "100", "A", {"A": "40", "Z": "10"}),
            "A",
        )
        assert "custom_split_total_mismatch" not in issue_types(result)
        assert result.expense_id == "e1"
