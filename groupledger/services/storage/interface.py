"""
Abstract Storage Interface

The settlement engine never talks to a database directly. It sees the
external document store only through these interfaces, so the store can be
swapped for:
1. In-memory storage for testing
2. Google Sheets for a zero-setup deployment
3. Any document database with live queries

Expense documents cross this boundary undecoded (plain dicts). Decoding,
and skipping malformed records, is the ledger's job.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, AsyncIterator, Optional

from groupledger.models.audit import AuditEvent
from groupledger.models.ledger import Group, LedgerSnapshot
from groupledger.models.records import RecordCategory, ShoppingRecord


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for the group expense document store.

    Writes are forwarded verbatim; the store enforces nothing beyond
    document identity.
    """

    @abstractmethod
    async def fetch_expense_documents(self, group_id: str) -> list[dict[str, Any]]:
        """
        Fetch every expense document for a group.

        Args:
            group_id: The group's identifier

        Returns:
            Raw documents, in no guaranteed order

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def add_expense(self, group_id: str, document: dict[str, Any]) -> bool:
        """
        Store a new expense document.

        Raises:
            DuplicateError: If a document with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, group_id: str, expense_id: str) -> bool:
        """
        Delete an expense document.

        Returns:
            True if a document was deleted, False if none matched
        """
        pass

    @abstractmethod
    def subscribe(self, group_id: str) -> AsyncIterator[LedgerSnapshot]:
        """
        Live query over a group's expenses.

        Yields the current snapshot first, then a complete replacement
        snapshot every time the group's expenses change.
        """
        pass


class GroupStoreInterface(ABC):
    """Abstract interface for the group directory."""

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        """Retrieve a group, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """Create or replace a group."""
        pass

    @abstractmethod
    async def list_groups_for_member(self, member_id: str) -> list[Group]:
        """All groups the member currently belongs to."""
        pass


class RecordStoreInterface(ABC):
    """Abstract interface for personal shopping records."""

    @abstractmethod
    async def add_record(self, record: ShoppingRecord) -> bool:
        """Store a new record."""
        pass

    @abstractmethod
    async def delete_record(self, owner_id: str, record_id: str) -> bool:
        """Delete one of the owner's records. False if it wasn't found."""
        pass

    @abstractmethod
    async def list_records(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[RecordCategory] = None,
    ) -> list[ShoppingRecord]:
        """
        List an owner's records, newest first.

        Args:
            owner_id: Whose records to list
            date_from: Records on or after this day
            date_to: Records on or before this day
            category: Filter by category
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_group(self, group_id: str) -> list[AuditEvent]:
        """All events for a group, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
