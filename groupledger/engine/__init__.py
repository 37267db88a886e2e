"""Ledger settlement engine package."""

from groupledger.engine.calculator import compute_balances
from groupledger.engine.ledger import ExpenseLedger
from groupledger.engine.reducer import SnapshotReducer, SnapshotToken
from groupledger.engine.settlement import DEFAULT_EPSILON, minimize_transfers

__all__ = [
    "DEFAULT_EPSILON",
    "ExpenseLedger",
    "SnapshotReducer",
    "SnapshotToken",
    "compute_balances",
    "minimize_transfers",
]
