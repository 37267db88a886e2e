"""
In-Memory Storage Implementation

Process-local stores that follow the abstract interfaces. They back the
test suite and are the default backend when no external store is
configured. The expense store emits live snapshots to its subscribers
after every write, like a document database with live queries.
"""

import asyncio
import copy
from collections import defaultdict
from datetime import date
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from groupledger.models.audit import AuditEvent
from groupledger.models.ledger import Group, LedgerSnapshot
from groupledger.models.records import RecordCategory, ShoppingRecord
from groupledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStoreInterface,
    GroupStoreInterface,
    RecordStoreInterface,
)


class InMemoryExpenseStore(ExpenseStoreInterface):
    """Expense documents keyed by group id, then expense id."""

    def __init__(self):
        self._documents: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._subscribers: dict[str, list[asyncio.Queue]] = defaultdict(list)

    def _snapshot(self, group_id: str) -> LedgerSnapshot:
        return LedgerSnapshot(
            group_id=group_id,
            documents=copy.deepcopy(list(self._documents[group_id].values())),
        )

    def _publish(self, group_id: str) -> None:
        snapshot = self._snapshot(group_id)
        for queue in self._subscribers[group_id]:
            queue.put_nowait(snapshot)

    async def fetch_expense_documents(self, group_id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(list(self._documents[group_id].values()))

    async def add_expense(self, group_id: str, document: dict[str, Any]) -> bool:
        doc_id = str(document.get("id") or uuid4())
        if doc_id in self._documents[group_id]:
            raise DuplicateError(f"Expense already exists: {doc_id}")
        self._documents[group_id][doc_id] = copy.deepcopy(document)
        self._publish(group_id)
        return True

    async def delete_expense(self, group_id: str, expense_id: str) -> bool:
        if self._documents[group_id].pop(expense_id, None) is None:
            return False
        self._publish(group_id)
        return True

    async def subscribe(self, group_id: str) -> AsyncIterator[LedgerSnapshot]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[group_id].append(queue)
        try:
            yield self._snapshot(group_id)
            while True:
                yield await queue.get()
        finally:
            self._subscribers[group_id].remove(queue)

    def subscriber_count(self, group_id: str) -> int:
        return len(self._subscribers[group_id])


class InMemoryGroupStore(GroupStoreInterface):
    """Groups keyed by id."""

    def __init__(self):
        self._groups: dict[str, Group] = {}

    async def get_group(self, group_id: str) -> Optional[Group]:
        return self._groups.get(group_id)

    async def save_group(self, group: Group) -> bool:
        self._groups[group.id] = group
        return True

    async def list_groups_for_member(self, member_id: str) -> list[Group]:
        return [g for g in self._groups.values() if g.has_member(member_id)]


class InMemoryRecordStore(RecordStoreInterface):
    """Personal records keyed by id."""

    def __init__(self):
        self._records: dict[str, ShoppingRecord] = {}

    async def add_record(self, record: ShoppingRecord) -> bool:
        if record.id in self._records:
            raise DuplicateError(f"Record already exists: {record.id}")
        self._records[record.id] = record
        return True

    async def delete_record(self, owner_id: str, record_id: str) -> bool:
        record = self._records.get(record_id)
        if record is None or record.owner_id != owner_id:
            return False
        del self._records[record_id]
        return True

    async def list_records(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[RecordCategory] = None,
    ) -> list[ShoppingRecord]:
        records = []
        for record in self._records.values():
            if record.owner_id != owner_id:
                continue
            if date_from and record.day < date_from:
                continue
            if date_to and record.day > date_to:
                continue
            if category and record.category != category:
                continue
            records.append(record)

        records.sort(key=lambda r: r.date, reverse=True)
        return records


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_group(self, group_id: str) -> list[AuditEvent]:
        events = [e for e in self._events if e.group_id == group_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
