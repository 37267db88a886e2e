"""
Audit Logger

Every ledger write, rejected write and skipped record is logged.

The audit logger:
- Always writes a structured local log line
- Persists to audit storage when one is configured
- Never raises if persistence fails
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from groupledger.models.audit import AuditEvent, AuditEventBuilder
from groupledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("groupledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_added(
        self,
        group_id: str,
        expense_id: str,
        actor_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_added(
            group_id=group_id,
            expense_id=expense_id,
            actor_id=actor_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_expense_rejected(
        self,
        group_id: str,
        expense_id: str,
        actor_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_rejected(
            group_id=group_id,
            expense_id=expense_id,
            actor_id=actor_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_expense_removed(
        self,
        group_id: str,
        expense_id: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_removed(
            group_id=group_id,
            expense_id=expense_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_loaded(
        self,
        group_id: str,
        loaded: int,
        skipped: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_loaded(
            group_id=group_id,
            loaded=loaded,
            skipped=skipped,
            correlation_id=correlation_id,
        ))

    async def log_decode_skipped(
        self,
        group_id: str,
        document_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_decode_skipped(
            group_id=group_id,
            document_id=document_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_balances_computed(
        self,
        group_id: str,
        expense_count: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balances_computed(
            group_id=group_id,
            expense_count=expense_count,
            issue_count=issue_count,
            correlation_id=correlation_id,
        ))

    async def log_settlement_planned(
        self,
        group_id: str,
        transfer_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_planned(
            group_id=group_id,
            transfer_count=transfer_count,
            correlation_id=correlation_id,
        ))

    async def log_reconciliation_failed(
        self,
        group_id: str,
        residue: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_failed(
            group_id=group_id,
            residue=residue,
            correlation_id=correlation_id,
        ))

    async def log_group_created(self, group_id: str, name: str, actor_id: str) -> None:
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            actor_id=actor_id,
        ))

    async def log_member_added(self, group_id: str, member_id: str, actor_id: str) -> None:
        await self.log(AuditEventBuilder.member_added(
            group_id=group_id,
            member_id=member_id,
            actor_id=actor_id,
        ))

    async def log_record_added(self, record_id: str, owner_id: str, amount: str) -> None:
        await self.log(AuditEventBuilder.record_added(
            record_id=record_id,
            owner_id=owner_id,
            amount=amount,
        ))

    async def log_record_deleted(self, record_id: str, owner_id: str) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            record_id=record_id,
            owner_id=owner_id,
        ))

    async def log_query_executed(
        self,
        query_id: str,
        query_type: str,
        result_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.query_executed(
            query_id=query_id,
            query_type=query_type,
            result_count=result_count,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed call to the external store."""
        await self.log(AuditEventBuilder.store_error(
            operation=operation,
            error_message=error_message,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action and pass it through
    all subsequent operations.
    """
    return uuid4()
