"""Services package."""

from finance_tracker.services.extraction import (
    ExtractorInterface,
    MindeeReceiptExtractor,
    PlaceholderExtractor,
)
from finance_tracker.services.object_store import (
    CloudinaryObjectStore,
    InMemoryObjectStore,
    ObjectStoreInterface,
    generate_object_path,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReceiptStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
    InMemoryTransactionStorage,
    ReceiptStorageInterface,
    TransactionStorageInterface,
)

__all__ = [
    # Extraction
    "ExtractorInterface",
    "MindeeReceiptExtractor",
    "PlaceholderExtractor",
    # Object store
    "CloudinaryObjectStore",
    "InMemoryObjectStore",
    "ObjectStoreInterface",
    "generate_object_path",
    # Record store
    "AuditStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsReceiptStorage",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryReceiptStorage",
    "InMemoryTransactionStorage",
    "ReceiptStorageInterface",
    "TransactionStorageInterface",
]
