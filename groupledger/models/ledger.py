"""
Core Data Models for Group Ledgers

These models define the schemas for everything the settlement engine
reads or derives:
1. Members and groups (who can share expenses)
2. Expenses with their split rules (what was spent)
3. Balances, transfers and settlement plans (what is owed)
4. Validation and computation issues (what went wrong)

Amounts are Decimal throughout. Rounding happens only when a value is
prepared for display.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class SplitMethod(str, Enum):
    """How an expense is divided between members."""
    EQUAL = "equal"    # Evenly across all current members
    CUSTOM = "custom"  # Absolute per-member amounts


class IssueSeverity(str, Enum):
    """Severity of a validation or computation issue."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# =============================================================================
# MEMBERS AND GROUPS
# =============================================================================

class Member(BaseModel):
    """A participant in a group, identified by an opaque user id."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque user identifier"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )


class Group(BaseModel):
    """
    A shared-expense group.

    Members have set semantics keyed by id. Their order is kept only for
    display and never affects computation. Groups are treated as
    immutable: adding a member returns a new Group.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Group identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Group name"
    )
    members: tuple[Member, ...] = Field(
        default_factory=tuple,
        description="Current members"
    )

    @field_validator('members')
    @classmethod
    def unique_member_ids(cls, v: tuple[Member, ...]) -> tuple[Member, ...]:
        """Reject duplicate member ids."""
        seen: set[str] = set()
        for member in v:
            if member.id in seen:
                raise ValueError(f"Duplicate member id: {member.id}")
            seen.add(member.id)
        return v

    @property
    def member_ids(self) -> set[str]:
        return {m.id for m in self.members}

    def has_member(self, member_id: str) -> bool:
        return member_id in self.member_ids

    def member_name(self, member_id: str) -> str:
        """Display name for a member id, "Unknown" for non-members."""
        for member in self.members:
            if member.id == member_id:
                return member.name or member.id
        return "Unknown"

    def add_member(self, member: Member) -> "Group":
        """Return a new group state with the member appended."""
        if self.has_member(member.id):
            raise ValueError(f"Member already in group: {member.id}")
        return self.model_copy(update={"members": self.members + (member,)})


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    A single shared expense.

    Documents coming from the external store use camelCase keys
    (paidBy, splitMethod, customSplit); both spellings are accepted.
    custom_split values are absolute amounts owed by each member, not ratios.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Expense identifier"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount paid"
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paid_by", "paidBy"),
        description="Member id of the payer"
    )
    split_method: SplitMethod = Field(
        default=SplitMethod.EQUAL,
        validation_alias=AliasChoices("split_method", "splitMethod"),
    )
    custom_split: Optional[dict[str, Decimal]] = Field(
        default=None,
        validation_alias=AliasChoices("custom_split", "customSplit"),
        description="Member id -> absolute amount owed"
    )
    date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the expense happened (UTC)"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Naive dates are taken as UTC; aware dates are converted to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator('split_method', mode='before')
    @classmethod
    def normalize_split_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode='after')
    def custom_split_matches_method(self) -> 'Expense':
        """custom_split is present iff the split method is custom."""
        if self.split_method == SplitMethod.CUSTOM and self.custom_split is None:
            raise ValueError("Custom split method requires custom_split")
        if self.split_method == SplitMethod.EQUAL and self.custom_split:
            raise ValueError("custom_split is only allowed with the custom split method")
        return self

    @property
    def custom_split_total(self) -> Decimal:
        if not self.custom_split:
            return Decimal("0")
        return sum(self.custom_split.values(), Decimal("0"))

    def to_document(self) -> dict[str, Any]:
        """Serialize to the store's document shape."""
        return {
            "id": self.id,
            "title": self.title,
            "amount": str(self.amount),
            "paidBy": self.paid_by,
            "splitMethod": self.split_method.value,
            "customSplit": (
                {k: str(v) for k, v in self.custom_split.items()}
                if self.custom_split is not None
                else None
            ),
            "date": self.date.isoformat(),
        }


# =============================================================================
# ISSUES
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found on an incoming expense."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_value', 'not_a_member')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: IssueSeverity = Field(
        ...,
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating an expense before it enters the ledger.

    Only error-level issues block the write. Warnings are returned to the
    caller so they can be shown.
    """

    expense_id: str
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == IssueSeverity.ERROR for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == IssueSeverity.ERROR)

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == IssueSeverity.WARNING]


class ComputationIssue(BaseModel):
    """
    Something the balance calculator could not apply cleanly.

    Issues are reported next to the balances instead of being raised, so a
    single bad expense never hides the rest of the ledger.
    """

    code: str = Field(
        ...,
        description="Machine-readable code (e.g., 'no_members')"
    )
    message: str
    severity: IssueSeverity = IssueSeverity.ERROR
    expense_id: Optional[str] = None


# =============================================================================
# DERIVED VALUES
# =============================================================================

class BalanceSheet(BaseModel):
    """
    Net balances for a group.

    Positive: the group owes that member.
    Negative: that member owes the group.
    """

    group_id: str
    computed_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    balances: dict[str, Decimal] = Field(
        default_factory=dict
    )
    issues: list[ComputationIssue] = Field(
        default_factory=list
    )
    expense_count: int = Field(
        default=0,
        ge=0,
        description="Expenses applied to the balances"
    )
    skipped_expense_ids: list[str] = Field(
        default_factory=list
    )

    @property
    def total_residue(self) -> Decimal:
        """Sum of all balances; zero for a consistent ledger."""
        return sum(self.balances.values(), Decimal("0"))

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == IssueSeverity.ERROR for issue in self.issues)

    def balance_for(self, member_id: str) -> Optional[Decimal]:
        return self.balances.get(member_id)

    def rounded(self, places: int = 2) -> dict[str, Decimal]:
        """Balances rounded for display."""
        quantum = Decimal(1).scaleb(-places)
        return {
            member_id: value.quantize(quantum)
            for member_id, value in self.balances.items()
        }


class Transfer(BaseModel):
    """A suggested payment that moves balances toward zero."""
    model_config = ConfigDict(frozen=True)

    from_member: str
    to_member: str
    amount: Decimal = Field(
        ...,
        gt=0
    )


class ReconciliationError(BaseModel):
    """Balances did not sum to zero, so they cannot be fully settled."""

    message: str
    residue: Decimal


class SettlementPlan(BaseModel):
    """Transfers that settle a set of balances."""

    transfers: list[Transfer] = Field(
        default_factory=list
    )
    residue: Decimal = Field(
        default=Decimal("0"),
        description="Sum of the input balances"
    )
    unsettled: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Balances left over after matching"
    )
    error: Optional[ReconciliationError] = None

    @property
    def is_settled(self) -> bool:
        return self.error is None and not self.unsettled

    def apply(self, balances: dict[str, Decimal]) -> dict[str, Decimal]:
        """Balances after every transfer has been paid."""
        result = dict(balances)
        for transfer in self.transfers:
            result[transfer.from_member] = result.get(transfer.from_member, Decimal("0")) + transfer.amount
            result[transfer.to_member] = result.get(transfer.to_member, Decimal("0")) - transfer.amount
        return result


class LedgerSnapshot(BaseModel):
    """A complete point-in-time copy of a group's expense documents."""

    group_id: str
    documents: list[dict[str, Any]] = Field(
        default_factory=list
    )
    received_at: datetime = Field(
        default_factory=datetime.utcnow
    )


class GroupSummary(BaseModel):
    """Everything a group screen shows about who owes whom."""

    group: Group
    sheet: BalanceSheet
    plan: SettlementPlan
    viewer_id: str
    viewer_balance: Optional[Decimal] = Field(
        default=None,
        description="The viewing member's own balance"
    )
    display_balances: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Balances rounded to the configured display places"
    )
