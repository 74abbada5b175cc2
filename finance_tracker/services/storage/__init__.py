"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage.
Google Sheets is the production backend; the in-memory backend serves tests
and local development.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ReceiptStorageInterface,
    TransactionStorageInterface,
)
from finance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
    InMemoryTransactionStorage,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReceiptStorage,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ReceiptStorageInterface",
    "TransactionStorageInterface",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryReceiptStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsReceiptStorage",
    "GoogleSheetsTransactionStorage",
]
