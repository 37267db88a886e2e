"""
Shared fixtures.

Async code is driven with asyncio.run through the `run` fixture, so every
test gets a fresh event loop.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from groupledger.audit import AuditLogger
from groupledger.config import LedgerSettings
from groupledger.models.ledger import Expense, Group, Member, SplitMethod
from groupledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStore,
    InMemoryGroupStore,
    InMemoryRecordStore,
)


@pytest.fixture
def run():
    def _run(coro):
        return asyncio.run(coro)
    return _run


@pytest.fixture
def ledger_settings():
    return LedgerSettings(_env_file=None)


@pytest.fixture
def alice():
    return Member(id="A", name="Alice")


@pytest.fixture
def bob():
    return Member(id="B", name="Bob")


@pytest.fixture
def carol():
    return Member(id="C", name="Carol")


@pytest.fixture
def group(alice, bob, carol):
    return Group(id="trip", name="Trip", members=(alice, bob, carol))


@pytest.fixture
def expense_store():
    return InMemoryExpenseStore()


@pytest.fixture
def group_store():
    return InMemoryGroupStore()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


def make_expense(
    expense_id: str,
    amount: str,
    paid_by: str,
    custom_split: dict | None = None,
    when: datetime | None = None,
) -> Expense:
    """Build an expense; a custom_split switches it to the custom method."""
    return Expense(
        id=expense_id,
        title=f"Expense {expense_id}",
        amount=Decimal(amount),
        paid_by=paid_by,
        split_method=SplitMethod.CUSTOM if custom_split is not None else SplitMethod.EQUAL,
        custom_split=(
            {k: Decimal(v) for k, v in custom_split.items()}
            if custom_split is not None
            else None
        ),
        date=when or datetime(2024, 1, 1, 12, 0),
    )
