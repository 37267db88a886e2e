"""
Main Orchestrator for GroupLedger

Ties the engine, the stores and the audit log together into the flows an
application calls:
1. Group ledger (create group, add member, add/remove expense, settle up)
2. Personal records (add, delete, query)

Every call names the group and the acting member explicitly. There is no
ambient "current user".
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from groupledger.audit import AuditLogger, create_correlation_id
from groupledger.config import LedgerSettings, get_settings
from groupledger.engine import (
    ExpenseLedger,
    SnapshotReducer,
    compute_balances,
    minimize_transfers,
)
from groupledger.models.ledger import (
    BalanceSheet,
    Expense,
    Group,
    GroupSummary,
    Member,
    ValidationResult,
)
from groupledger.models.records import QueryResult, RecordQuery, ShoppingRecord
from groupledger.queries import RecordQueryExecutor
from groupledger.services.storage import (
    ExpenseStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    GoogleSheetsGroupStore,
    GoogleSheetsRecordStore,
    GroupStoreInterface,
    InMemoryExpenseStore,
    InMemoryGroupStore,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
)
from groupledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class GroupLedgerFlow:
    """
    Orchestrates shared-group expense tracking.

    Reads always recompute from a fresh load; nothing derived is cached.
    """

    def __init__(
        self,
        expense_store: ExpenseStoreInterface,
        group_store: GroupStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._expense_store = expense_store
        self._group_store = group_store
        self._audit_logger = audit_logger
        self._ledger = ExpenseLedger(
            expense_store,
            validator=ExpenseValidator(self._settings),
            audit_logger=audit_logger,
        )

    @property
    def ledger(self) -> ExpenseLedger:
        return self._ledger

    async def get_group(self, group_id: str) -> Group:
        """
        Raises:
            NotFoundError: If the group doesn't exist
        """
        group = await self._group_store.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    async def create_group(self, name: str, creator: Member) -> Group:
        """Create a group whose only member is its creator."""
        group = Group(name=name, members=(creator,))
        await self._group_store.save_group(group)

        if self._audit_logger:
            await self._audit_logger.log_group_created(
                group_id=group.id,
                name=group.name,
                actor_id=creator.id,
            )
        return group

    async def add_member(
        self,
        group_id: str,
        member: Member,
        actor_id: str,
    ) -> tuple[Group, bool, str]:
        """
        Add a member to a group.

        Returns:
            (group, added, message). The group is the stored state after
            the call; added is False if nothing changed.
        """
        group = await self.get_group(group_id)

        if not group.has_member(actor_id):
            return group, False, f"{actor_id} is not a member of this group"
        if group.has_member(member.id):
            return group, False, f"{member.name or member.id} is already in the group"

        updated = group.add_member(member)
        await self._group_store.save_group(updated)

        if self._audit_logger:
            await self._audit_logger.log_member_added(
                group_id=group_id,
                member_id=member.id,
                actor_id=actor_id,
            )
        return updated, True, f"{member.name or member.id} added"

    async def add_expense(
        self,
        group_id: str,
        expense: Expense,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        group = await self.get_group(group_id)
        return await self._ledger.add(
            group,
            expense,
            actor_id,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def remove_expense(
        self,
        group_id: str,
        expense_id: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        group = await self.get_group(group_id)
        return await self._ledger.remove(
            group,
            expense_id,
            actor_id,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def list_expenses(self, group_id: str) -> list[Expense]:
        """Expenses newest first, malformed records skipped."""
        return await self._ledger.load(group_id)

    async def compute_balances(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceSheet:
        correlation_id = correlation_id or create_correlation_id()
        group = await self.get_group(group_id)
        expenses = await self._ledger.load(group_id, correlation_id=correlation_id)

        sheet = compute_balances(group.members, expenses, group.id)

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(
                group_id=group_id,
                expense_count=sheet.expense_count,
                issue_count=len(sheet.issues),
                correlation_id=correlation_id,
            )
        return sheet

    async def summarize(
        self,
        group_id: str,
        viewer_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> GroupSummary:
        """
        Balances and a settlement plan for a group, as seen by one member.
        """
        correlation_id = correlation_id or create_correlation_id()
        group = await self.get_group(group_id)
        sheet = await self.compute_balances(group_id, correlation_id=correlation_id)
        plan = minimize_transfers(sheet.balances, epsilon=self._settings.balance_epsilon)

        if self._audit_logger:
            if plan.error is not None:
                await self._audit_logger.log_reconciliation_failed(
                    group_id=group_id,
                    residue=str(plan.residue),
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_settlement_planned(
                group_id=group_id,
                transfer_count=len(plan.transfers),
                correlation_id=correlation_id,
            )

        return GroupSummary(
            group=group,
            sheet=sheet,
            plan=plan,
            viewer_id=viewer_id,
            viewer_balance=sheet.balance_for(viewer_id),
            display_balances=sheet.rounded(self._settings.display_decimal_places),
        )

    async def watch(self, group_id: str, reducer: SnapshotReducer) -> asyncio.Task:
        """
        Start feeding a group's live snapshots into a reducer.

        Membership is re-read for every snapshot. Cancel the returned task
        to stop listening.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        await self.get_group(group_id)
        return asyncio.create_task(
            reducer.consume(
                group_id,
                self._expense_store.subscribe(group_id),
                self._group_store.get_group,
            ),
            name=f"watch-{group_id}",
        )


class RecordFlow:
    """Orchestrates personal shopping records."""

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._record_store = record_store
        self._executor = RecordQueryExecutor(record_store)
        self._audit_logger = audit_logger

    async def add_record(self, record: ShoppingRecord) -> ShoppingRecord:
        await self._record_store.add_record(record)
        if self._audit_logger:
            await self._audit_logger.log_record_added(
                record_id=record.id,
                owner_id=record.owner_id,
                amount=str(record.amount),
            )
        return record

    async def delete_record(self, owner_id: str, record_id: str) -> bool:
        deleted = await self._record_store.delete_record(owner_id, record_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_record_deleted(
                record_id=record_id,
                owner_id=owner_id,
            )
        return deleted

    async def query(self, query: RecordQuery) -> QueryResult:
        result = await self._executor.execute(query)
        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                query_id=query.query_id,
                query_type=query.query_type,
                result_count=result.result_count,
            )
        return result


def create_app_components(
    use_storage: bool = True,
) -> tuple[GroupLedgerFlow, RecordFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured external backend.
                    Set to False for in-memory stores only.

    Returns:
        (group_ledger_flow, record_flow, sheets_client)
    """
    settings = get_settings().ledger
    sheets_client = None

    if use_storage and settings.store_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            expense_store = GoogleSheetsExpenseStore(
                sheets_client,
                poll_seconds=settings.subscription_poll_seconds,
            )
            group_store = GoogleSheetsGroupStore(sheets_client)
            record_store = GoogleSheetsRecordStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            expense_store = InMemoryExpenseStore()
            group_store = InMemoryGroupStore()
            record_store = InMemoryRecordStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        expense_store = InMemoryExpenseStore()
        group_store = InMemoryGroupStore()
        record_store = InMemoryRecordStore()
        audit_logger = AuditLogger()  # Local-only logging

    group_flow = GroupLedgerFlow(
        expense_store,
        group_store,
        audit_logger=audit_logger,
        settings=settings,
    )
    record_flow = RecordFlow(record_store, audit_logger=audit_logger)

    return group_flow, record_flow, sheets_client
