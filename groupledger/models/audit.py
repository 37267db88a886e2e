"""
Audit Models for Group Ledgers

Every write to a ledger, every rejected write and every record skipped
while loading is captured as an AuditEvent. Events are append-only.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger writes
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REJECTED = "expense_rejected"
    EXPENSE_REMOVED = "expense_removed"

    # Ledger reads
    LEDGER_LOADED = "ledger_loaded"
    EXPENSE_DECODE_SKIPPED = "expense_decode_skipped"

    # Computation
    BALANCES_COMPUTED = "balances_computed"
    COMPUTATION_ISSUE = "computation_issue"
    SETTLEMENT_PLANNED = "settlement_planned"
    RECONCILIATION_FAILED = "reconciliation_failed"
    SNAPSHOT_SUPERSEDED = "snapshot_superseded"

    # Groups
    GROUP_CREATED = "group_created"
    MEMBER_ADDED = "member_added"

    # Personal records
    RECORD_ADDED = "record_added"
    RECORD_DELETED = "record_deleted"
    QUERY_EXECUTED = "query_executed"

    # System events
    SYSTEM_ERROR = "system_error"
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'group', 'record')"
    )
    entity_id: Optional[str] = None

    # Scope of the event
    group_id: Optional[str] = None
    actor_id: Optional[str] = Field(
        default=None,
        description="Member who triggered the event, if any"
    )
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500
    )
    details: dict[str, Any] = Field(
        default_factory=dict
    )
    error_message: Optional[str] = None

    @property
    def is_user_action(self) -> bool:
        return self.actor_id is not None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "group_id": self.group_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, group_id, actor_id, correlation_id, description,
        details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.group_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(group_id, expense_id, actor_id, amount)
    """

    @staticmethod
    def expense_added(
        group_id: str,
        expense_id: str,
        actor_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense added: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def expense_rejected(
        group_id: str,
        expense_id: str,
        actor_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def expense_removed(
        group_id: str,
        expense_id: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REMOVED,
            entity_type="expense",
            entity_id=expense_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Expense removed",
        )

    @staticmethod
    def ledger_loaded(
        group_id: str,
        loaded: int,
        skipped: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Ledger loaded: {loaded} expenses, {skipped} skipped",
            details={"loaded": loaded, "skipped": skipped},
        )

    @staticmethod
    def expense_decode_skipped(
        group_id: str,
        document_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DECODE_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=document_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Malformed expense record skipped",
            error_message=error_message,
        )

    @staticmethod
    def balances_computed(
        group_id: str,
        expense_count: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.WARNING if issue_count else AuditSeverity.INFO,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Balances computed over {expense_count} expenses",
            details={"expense_count": expense_count, "issue_count": issue_count},
        )

    @staticmethod
    def settlement_planned(
        group_id: str,
        transfer_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_PLANNED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement planned with {transfer_count} transfers",
            details={"transfer_count": transfer_count},
        )

    @staticmethod
    def reconciliation_failed(
        group_id: str,
        residue: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Balances do not sum to zero",
            details={"residue": residue},
        )

    @staticmethod
    def member_added(
        group_id: str,
        member_id: str,
        actor_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="member",
            entity_id=member_id,
            group_id=group_id,
            actor_id=actor_id,
            description=f"Member added: {member_id}",
        )

    @staticmethod
    def group_created(
        group_id: str,
        name: str,
        actor_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            actor_id=actor_id,
            description=f"Group created: {name}",
        )

    @staticmethod
    def record_added(
        record_id: str,
        owner_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            entity_type="record",
            entity_id=record_id,
            actor_id=owner_id,
            description=f"Record added: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def record_deleted(
        record_id: str,
        owner_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="record",
            entity_id=record_id,
            actor_id=owner_id,
            description="Record deleted",
        )

    @staticmethod
    def query_executed(
        query_id: str,
        query_type: str,
        result_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="query",
            entity_id=query_id,
            description=f"Query executed: {query_type} returned {result_count} results",
            details={"query_type": query_type, "result_count": result_count},
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
