"""Validation package."""

from groupledger.validation.validator import ExpenseValidator

__all__ = ["ExpenseValidator"]
