"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the external
document store. In-memory and Google Sheets backends are included.
"""

from groupledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStoreInterface,
    GroupStoreInterface,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from groupledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    InMemoryGroupStore,
    InMemoryRecordStore,
)
from groupledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    GoogleSheetsGroupStore,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStoreInterface",
    "GroupStoreInterface",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStore",
    "InMemoryGroupStore",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
    "GoogleSheetsGroupStore",
    "GoogleSheetsRecordStore",
]
