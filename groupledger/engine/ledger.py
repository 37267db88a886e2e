"""
Expense Ledger

The authoritative list of a group's expenses, sourced from the external
store. The ledger:
- Decodes raw store documents, skipping malformed ones
- Validates new expenses before forwarding them to the store
- Forwards removals to the store

It keeps no persisted state of its own. Every operation takes the group
and the acting member explicitly.
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from groupledger.audit import AuditLogger
from groupledger.models.ledger import (
    Expense,
    Group,
    IssueSeverity,
    ValidationIssue,
    ValidationResult,
)
from groupledger.services.storage import ExpenseStoreInterface, StorageError
from groupledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class ExpenseLedger:
    """Reads and writes one store's group expenses."""

    def __init__(
        self,
        store: ExpenseStoreInterface,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger

    def decode(self, document: Any, group_id: str = "") -> Optional[Expense]:
        """
        Decode one store document.

        Returns None (and logs a warning) if the document is malformed.
        """
        try:
            return Expense.model_validate(document)
        except (ValidationError, TypeError, ValueError) as e:
            doc_id = document.get("id") if isinstance(document, dict) else None
            logger.warning(
                "expense_decode_failed",
                group_id=group_id,
                document_id=doc_id,
                error=str(e),
            )
            return None

    def decode_all(
        self,
        documents: list[Any],
        group_id: str = "",
    ) -> tuple[list[Expense], list[tuple[Optional[str], str]]]:
        """
        Decode a full snapshot.

        Returns:
            (expenses, skipped) where skipped holds (document_id, reason)
            for every document that failed to decode
        """
        expenses = []
        skipped = []
        for document in documents:
            expense = self.decode(document, group_id)
            if expense is None:
                doc_id = document.get("id") if isinstance(document, dict) else None
                skipped.append((doc_id, "malformed expense record"))
            else:
                expenses.append(expense)
        return expenses, skipped

    async def load(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        Fetch and decode every expense for a group.

        Malformed records are skipped. The result is newest first; the
        order is for display only.

        Raises:
            StorageError: If the store can't be read
        """
        try:
            documents = await self._store.fetch_expense_documents(group_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_store_error(
                    operation="load",
                    error_message=str(e),
                    group_id=group_id,
                    correlation_id=correlation_id,
                )
            raise

        expenses, skipped = self.decode_all(documents, group_id)

        if self._audit_logger:
            for doc_id, reason in skipped:
                await self._audit_logger.log_decode_skipped(
                    group_id=group_id,
                    document_id=doc_id,
                    error_message=reason,
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_ledger_loaded(
                group_id=group_id,
                loaded=len(expenses),
                skipped=len(skipped),
                correlation_id=correlation_id,
            )

        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    async def add(
        self,
        group: Group,
        expense: Expense,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Validate an expense and forward it to the store.

        Returns:
            The ValidationResult. If it has errors, nothing was written.

        Raises:
            StorageError: If the store rejects the write
        """
        result = self._validator.validate(group, expense, actor_id)

        if result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_expense_rejected(
                    group_id=group.id,
                    expense_id=expense.id,
                    actor_id=actor_id,
                    issues=[i.model_dump(mode="json") for i in result.issues],
                    correlation_id=correlation_id,
                )
            return result

        try:
            await self._store.add_expense(group.id, expense.to_document())
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_store_error(
                    operation="add",
                    error_message=str(e),
                    group_id=group.id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                group_id=group.id,
                expense_id=expense.id,
                actor_id=actor_id,
                amount=str(expense.amount),
                correlation_id=correlation_id,
            )
        return result

    async def remove(
        self,
        group: Group,
        expense_id: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Forward an expense removal to the store.

        Returns:
            ValidationResult; an error issue if the actor isn't a member
            or the expense doesn't exist.

        Raises:
            StorageError: If the store rejects the delete
        """
        issues = []
        if not group.has_member(actor_id):
            issues.append(ValidationIssue(
                field="actor_id",
                issue_type="actor_not_member",
                message=f"{actor_id} is not a member of this group",
                severity=IssueSeverity.ERROR,
            ))
            return ValidationResult(expense_id=expense_id, issues=issues)

        try:
            deleted = await self._store.delete_expense(group.id, expense_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_store_error(
                    operation="remove",
                    error_message=str(e),
                    group_id=group.id,
                    correlation_id=correlation_id,
                )
            raise

        if not deleted:
            issues.append(ValidationIssue(
                field="expense_id",
                issue_type="not_found",
                message=f"Expense not found: {expense_id}",
                severity=IssueSeverity.ERROR,
            ))
        elif self._audit_logger:
            await self._audit_logger.log_expense_removed(
                group_id=group.id,
                expense_id=expense_id,
                actor_id=actor_id,
                correlation_id=correlation_id,
            )

        return ValidationResult(expense_id=expense_id, issues=issues)
