"""
Snapshot Reducer

Consumes live ledger snapshots and keeps the latest balances per group.

Each snapshot is a full replacement of a group's expenses, so every
snapshot triggers a full recompute. Within a group, results are applied
last-write-wins by arrival order: a new snapshot cancels the in-flight
recompute for that group, and a recompute that finishes after a newer
snapshot arrived is discarded. Groups never share state.
"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, NamedTuple, Optional

import structlog

from groupledger.audit import AuditLogger
from groupledger.engine.calculator import compute_balances
from groupledger.engine.ledger import ExpenseLedger
from groupledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from groupledger.models.ledger import (
    BalanceSheet,
    ComputationIssue,
    Expense,
    Group,
    IssueSeverity,
    LedgerSnapshot,
    Member,
)


logger = structlog.get_logger(__name__)

Calculator = Callable[[Iterable[Member], Iterable[Expense], str], BalanceSheet]
ResultCallback = Callable[[BalanceSheet], Any]
GroupLoader = Callable[[str], Awaitable[Optional[Group]]]


class SnapshotToken(NamedTuple):
    """Identifies one snapshot by its group and arrival order."""
    group_id: str
    sequence: int


class SnapshotReducer:
    """
    Single-consumer reducer over per-group snapshot streams.

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        ledger: ExpenseLedger,
        on_result: Optional[ResultCallback] = None,
        audit_logger: Optional[AuditLogger] = None,
        calculator: Calculator = compute_balances,
    ):
        self._ledger = ledger
        self._on_result = on_result
        self._audit_logger = audit_logger
        self._calculator = calculator

        self._sequences: dict[str, int] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._results: dict[str, BalanceSheet] = {}

    def is_current(self, token: SnapshotToken) -> bool:
        return self._sequences.get(token.group_id) == token.sequence

    def latest(self, group_id: str) -> Optional[BalanceSheet]:
        """The balances from the newest snapshot applied so far."""
        return self._results.get(group_id)

    def submit(self, group: Group, documents: list[dict[str, Any]]) -> SnapshotToken:
        """
        Start recomputing a group from a new snapshot.

        Any recompute still running for the same group is cancelled.
        """
        sequence = self._sequences.get(group.id, 0) + 1
        self._sequences[group.id] = sequence
        token = SnapshotToken(group.id, sequence)

        previous = self._tasks.get(group.id)
        if previous is not None and not previous.done():
            previous.cancel()

        self._tasks[group.id] = asyncio.create_task(
            self._recompute(group, list(documents), token),
            name=f"recompute-{group.id}-{sequence}",
        )
        return token

    async def consume(
        self,
        group_id: str,
        subscription: AsyncIterator[LedgerSnapshot],
        load_group: GroupLoader,
    ) -> None:
        """
        Feed every snapshot from a subscription into submit, in arrival order.

        The group is re-read for each snapshot so balances always split
        across the current membership. Snapshots for a group that no
        longer loads are dropped.
        """
        async for snapshot in subscription:
            group = await load_group(group_id)
            if group is None:
                logger.warning("snapshot_group_missing", group_id=group_id)
                continue
            self.submit(group, snapshot.documents)

    async def wait(self, group_id: str) -> Optional[BalanceSheet]:
        """Wait until the newest submitted snapshot has been applied."""
        while True:
            task = self._tasks.get(group_id)
            if task is None:
                return self.latest(group_id)
            await asyncio.wait({task})
            if self._tasks.get(group_id) is task:
                return self.latest(group_id)

    async def cancel(self, group_id: str) -> None:
        """Stop any in-flight recompute for a group."""
        task = self._tasks.pop(group_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def close(self) -> None:
        for group_id in list(self._tasks):
            await self.cancel(group_id)

    async def _recompute(
        self,
        group: Group,
        documents: list[dict[str, Any]],
        token: SnapshotToken,
    ) -> Optional[BalanceSheet]:
        try:
            expenses, skipped = self._ledger.decode_all(documents, group.id)
            sheet = await asyncio.to_thread(
                self._calculator, group.members, expenses, group.id
            )
        except asyncio.CancelledError:
            await self._superseded(token)
            raise
        except Exception as e:
            logger.error("recompute_failed", group_id=group.id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="recompute_failed",
                    error_message=str(e),
                    details={"group_id": group.id, "sequence": token.sequence},
                )
            return None

        if skipped and self._audit_logger:
            for doc_id, reason in skipped:
                await self._audit_logger.log_decode_skipped(
                    group_id=group.id,
                    document_id=doc_id,
                    error_message=reason,
                )

        if not self.is_current(token):
            await self._superseded(token)
            return None

        if skipped:
            sheet.issues.extend(
                ComputationIssue(
                    code="expense_decode_skipped",
                    message=reason,
                    severity=IssueSeverity.WARNING,
                    expense_id=doc_id,
                )
                for doc_id, reason in skipped
            )

        self._results[group.id] = sheet

        if self._on_result is not None:
            outcome = self._on_result(sheet)
            if inspect.isawaitable(outcome):
                await outcome

        return sheet

    async def _superseded(self, token: SnapshotToken) -> None:
        logger.info(
            "snapshot_superseded",
            group_id=token.group_id,
            sequence=token.sequence,
        )
        if self._audit_logger:
            await self._audit_logger.log(AuditEvent(
                event_type=AuditEventType.SNAPSHOT_SUPERSEDED,
                severity=AuditSeverity.DEBUG,
                entity_type="group",
                entity_id=token.group_id,
                group_id=token.group_id,
                description=f"Snapshot {token.sequence} superseded before it was applied",
                details={"sequence": token.sequence},
            ))
