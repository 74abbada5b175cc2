"""Transactions package."""

from finance_tracker.transactions.service import (
    TransactionService,
    draft_from_receipt,
)

__all__ = ["TransactionService", "draft_from_receipt"]
