"""
Data Models Package

This package contains all Pydantic models used by GroupLedger.
All data flowing through the engine must conform to these schemas.
"""

from groupledger.models.ledger import (
    BalanceSheet,
    ComputationIssue,
    Expense,
    Group,
    GroupSummary,
    IssueSeverity,
    LedgerSnapshot,
    Member,
    ReconciliationError,
    SettlementPlan,
    SplitMethod,
    Transfer,
    ValidationIssue,
    ValidationResult,
)
from groupledger.models.records import (
    CategoryTotal,
    QueryResult,
    RecordCategory,
    RecordQuery,
    ShoppingRecord,
)
from groupledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BalanceSheet",
    "ComputationIssue",
    "Expense",
    "Group",
    "GroupSummary",
    "IssueSeverity",
    "LedgerSnapshot",
    "Member",
    "ReconciliationError",
    "SettlementPlan",
    "SplitMethod",
    "Transfer",
    "ValidationIssue",
    "ValidationResult",
    # Personal record models
    "CategoryTotal",
    "QueryResult",
    "RecordCategory",
    "RecordQuery",
    "ShoppingRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
