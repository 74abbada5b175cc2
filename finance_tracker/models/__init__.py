"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the receipt pipeline must conform to these schemas.
"""

from finance_tracker.models.receipt import (
    ExtractedReceiptData,
    ReceiptFile,
    ReceiptItem,
    ReceiptRecord,
    ReceiptStatus,
)
from finance_tracker.models.transaction import (
    DEFAULT_CATEGORIES,
    Category,
    CategorySpending,
    FinancialSummary,
    MonthlyComparison,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "ExtractedReceiptData",
    "ReceiptFile",
    "ReceiptItem",
    "ReceiptRecord",
    "ReceiptStatus",
    # Transaction models
    "DEFAULT_CATEGORIES",
    "Category",
    "CategorySpending",
    "FinancialSummary",
    "MonthlyComparison",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
