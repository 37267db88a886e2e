"""Services package."""

from groupledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    GoogleSheetsGroupStore,
    GoogleSheetsRecordStore,
    GroupStoreInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    InMemoryGroupStore,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStore",
    "GoogleSheetsGroupStore",
    "GoogleSheetsRecordStore",
    "GroupStoreInterface",
    "InMemoryAuditStorage",
    "InMemoryExpenseStore",
    "InMemoryGroupStore",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "StorageError",
]
