"""
Google Sheets Storage Implementation

A spreadsheet doubles as the external document store:
- Expenses sheet: one row per expense, tagged with its group id
- Groups sheet: one row per group, members JSON-serialized
- ShoppingRecords sheet: one row per personal record
- AuditLog sheet: append-only events

TRADEOFFS:
- No push notifications, so subscriptions poll
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Only this adapter retries (tenacity). The engine above it has no retry
policy of its own.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from groupledger.config import get_settings
from groupledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from groupledger.models.ledger import Group, LedgerSnapshot, Member
from groupledger.models.records import RecordCategory, ShoppingRecord
from groupledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStoreInterface,
    GroupStoreInterface,
    RecordStoreInterface,
    StorageError,
)


# Column mappings for each sheet
EXPENSE_COLUMNS = [
    "group_id",
    "id",
    "title",
    "amount",
    "paid_by",
    "split_method",
    "custom_split_json",
    "date",
]

GROUP_COLUMNS = [
    "id",
    "name",
    "members_json",
]

RECORD_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "date",
    "category",
    "amount",
    "location",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "group_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_records_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.records_sheet_name, RECORD_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsExpenseStore(ExpenseStoreInterface):
    """
    Google Sheets implementation of the expense document store.

    Rows are converted back to camelCase documents without validation;
    a row that can't be parsed is passed through as-is and left for the
    ledger to reject.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._poll_seconds = poll_seconds or get_settings().ledger.subscription_poll_seconds

    def _document_to_row(self, group_id: str, document: dict[str, Any]) -> list:
        custom_split = document.get("customSplit")
        return [
            group_id,
            str(document.get("id", "")),
            str(document.get("title", "")),
            str(document.get("amount", "")),
            str(document.get("paidBy", "")),
            str(document.get("splitMethod", "")),
            json.dumps(custom_split) if custom_split is not None else "",
            str(document.get("date", "")),
        ]

    def _row_to_document(self, row: list) -> dict[str, Any]:
        custom_split: Any = None
        raw_split = _safe_get(row, 6)
        if raw_split:
            try:
                custom_split = json.loads(raw_split)
            except json.JSONDecodeError:
                custom_split = raw_split

        return {
            "id": _safe_get(row, 1),
            "title": _safe_get(row, 2),
            "amount": _safe_get(row, 3),
            "paidBy": _safe_get(row, 4),
            "splitMethod": _safe_get(row, 5),
            "customSplit": custom_split,
            "date": _safe_get(row, 7),
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_expense_documents(self, group_id: str) -> list[dict[str, Any]]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read expenses: {e}")

        return [
            self._row_to_document(row)
            for row in all_rows
            if row and row[0] == group_id
        ]

    async def add_expense(self, group_id: str, document: dict[str, Any]) -> bool:
        doc_id = str(document.get("id", ""))
        existing = await self.fetch_expense_documents(group_id)
        if doc_id and any(d["id"] == doc_id for d in existing):
            raise DuplicateError(f"Expense already exists: {doc_id}")

        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._document_to_row(group_id, document), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def delete_expense(self, group_id: str, expense_id: str) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
                if len(row) > 1 and row[0] == group_id and row[1] == expense_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def subscribe(self, group_id: str) -> AsyncIterator[LedgerSnapshot]:
        last: Optional[list[dict[str, Any]]] = None
        while True:
            documents = await self.fetch_expense_documents(group_id)
            if documents != last:
                last = documents
                yield LedgerSnapshot(group_id=group_id, documents=documents)
            await asyncio.sleep(self._poll_seconds)


class GoogleSheetsGroupStore(GroupStoreInterface):
    """Groups stored one per row with members as JSON."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _group_to_row(self, group: Group) -> list:
        return [
            group.id,
            group.name,
            json.dumps([m.model_dump() for m in group.members]),
        ]

    def _row_to_group(self, row: list) -> Group:
        members_json = _safe_get(row, 2)
        members = [Member(**m) for m in json.loads(members_json)] if members_json else []
        return Group(
            id=_safe_get(row, 0),
            name=_safe_get(row, 1),
            members=tuple(members),
        )

    async def _all_groups(self) -> list[Group]:
        try:
            sheet = self._client.get_groups_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read groups: {e}")

        groups = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                groups.append(self._row_to_group(row))
            except Exception:
                continue  # Skip malformed rows
        return groups

    async def get_group(self, group_id: str) -> Optional[Group]:
        for group in await self._all_groups():
            if group.id == group_id:
                return group
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_group(self, group: Group) -> bool:
        try:
            sheet = self._client.get_groups_sheet()
            all_rows = sheet.get_all_values()
            new_row = self._group_to_row(group)

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == group.id:
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return True

            sheet.append_row(new_row, value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")

    async def list_groups_for_member(self, member_id: str) -> list[Group]:
        return [g for g in await self._all_groups() if g.has_member(member_id)]


class GoogleSheetsRecordStore(RecordStoreInterface):
    """Personal shopping records stored one per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: ShoppingRecord) -> list:
        return [
            record.id,
            record.owner_id,
            record.name,
            record.date.isoformat(),
            record.category.value,
            str(record.amount),
            record.location,
        ]

    def _row_to_record(self, row: list) -> ShoppingRecord:
        return ShoppingRecord(
            id=_safe_get(row, 0),
            owner_id=_safe_get(row, 1),
            name=_safe_get(row, 2),
            date=datetime.fromisoformat(_safe_get(row, 3)),
            category=_safe_get(row, 4, "other"),
            amount=Decimal(_safe_get(row, 5, "0")),
            location=_safe_get(row, 6),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def add_record(self, record: ShoppingRecord) -> bool:
        try:
            sheet = self._client.get_records_sheet()
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save record: {e}")

    async def delete_record(self, owner_id: str, record_id: str) -> bool:
        try:
            sheet = self._client.get_records_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if len(row) > 1 and row[0] == record_id and row[1] == owner_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete record: {e}")

    async def list_records(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[RecordCategory] = None,
    ) -> list[ShoppingRecord]:
        try:
            sheet = self._client.get_records_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}")

        records = []
        for row in all_rows:
            if len(row) < 2 or row[1] != owner_id:
                continue

            try:
                record = self._row_to_record(row)
            except Exception:
                continue  # Skip malformed rows

            if date_from and record.day < date_from:
                continue
            if date_to and record.day > date_to:
                continue
            if category and record.category != category:
                continue

            records.append(record)

        records.sort(key=lambda r: r.date, reverse=True)
        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            group_id=_safe_get(row, 6) or None,
            actor_id=_safe_get(row, 7) or None,
            correlation_id=UUID(_safe_get(row, 8)) if _safe_get(row, 8) else None,
            description=_safe_get(row, 9),
            details=json.loads(_safe_get(row, 10)) if _safe_get(row, 10) else {},
            error_message=_safe_get(row, 11) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_group(self, group_id: str) -> list[AuditEvent]:
        events = [e for e in await self._all_events() if e.group_id == group_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = await self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
