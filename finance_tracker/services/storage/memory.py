"""
In-memory storage implementations.

Used by tests and by local development when Google Sheets is not
configured. Status transitions are compare-and-swap under an asyncio.Lock,
so concurrent worker invocations on one event loop race correctly.
"""

import asyncio
from datetime import date
from typing import Optional
from uuid import UUID

from finance_tracker.auth import AuthContext
from finance_tracker.errors import (
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
)
from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.receipt import ReceiptRecord, ReceiptStatus
from finance_tracker.models.transaction import (
    DEFAULT_CATEGORIES,
    Category,
    Transaction,
    TransactionType,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ExpectedStatus,
    ReceiptStorageInterface,
    TransactionStorageInterface,
    expected_statuses,
)


class InMemoryReceiptStorage(ReceiptStorageInterface):
    """Dict-backed receipt storage with row-level ownership checks."""

    def __init__(self):
        self._records: dict[str, ReceiptRecord] = {}
        self._lock = asyncio.Lock()

    def _owned(self, ctx: AuthContext, receipt_id: str) -> ReceiptRecord:
        record = self._records.get(receipt_id)
        if record is None or record.owner != ctx.user_id:
            raise NotFoundError(f"Receipt not found: {receipt_id}")
        return record

    async def create_receipt(self, ctx: AuthContext, record: ReceiptRecord) -> ReceiptRecord:
        if record.owner != ctx.user_id:
            raise PersistenceError("Receipt owner must be the caller")
        async with self._lock:
            if record.id in self._records:
                raise PersistenceError(f"Receipt already exists: {record.id}")
            self._records[record.id] = record
        return record

    async def get_receipt(self, ctx: AuthContext, receipt_id: str) -> Optional[ReceiptRecord]:
        record = self._records.get(receipt_id)
        if record is None or record.owner != ctx.user_id:
            return None
        return record

    async def update_receipt(self, ctx: AuthContext, receipt_id: str, **changes) -> ReceiptRecord:
        async with self._lock:
            record = self._owned(ctx, receipt_id)
            try:
                updated = record.with_changes(**changes)
            except ValueError as e:
                raise PersistenceError(f"Invalid receipt update: {e}")
            self._records[receipt_id] = updated
            return updated

    async def transition_status(
        self,
        ctx: AuthContext,
        receipt_id: str,
        expected: ExpectedStatus,
        target: ReceiptStatus,
        **changes,
    ) -> ReceiptRecord:
        async with self._lock:
            record = self._owned(ctx, receipt_id)
            if record.status not in expected_statuses(expected):
                raise ReceiptAlreadyProcessedError(receipt_id, record.status.value)
            try:
                updated = record.with_changes(status=target, **changes)
            except ValueError as e:
                raise PersistenceError(f"Invalid receipt update: {e}")
            self._records[receipt_id] = updated
            return updated

    async def list_receipts(
        self,
        ctx: AuthContext,
        status: Optional[ReceiptStatus] = None,
        limit: int = 100,
    ) -> list[ReceiptRecord]:
        records = [
            r for r in self._records.values()
            if r.owner == ctx.user_id and (status is None or r.status == status)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]


class InMemoryTransactionStorage(TransactionStorageInterface):
    """List-backed transaction storage seeded with the default categories."""

    def __init__(self, categories: Optional[list[Category]] = None):
        self._transactions: list[Transaction] = []
        self._categories = list(categories if categories is not None else DEFAULT_CATEGORIES)

    async def create_transaction(self, ctx: AuthContext, transaction: Transaction) -> Transaction:
        if transaction.owner != ctx.user_id:
            raise PersistenceError("Transaction owner must be the caller")
        self._transactions.append(transaction)
        return transaction

    async def list_transactions(
        self,
        ctx: AuthContext,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = 100,
    ) -> list[Transaction]:
        results = []
        for txn in self._transactions:
            if txn.owner != ctx.user_id:
                continue
            if transaction_type and txn.type != transaction_type:
                continue
            if category_id and txn.category_id != category_id:
                continue
            if date_from and txn.date < date_from:
                continue
            if date_to and txn.date > date_to:
                continue
            results.append(txn)
        results.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return results[:limit]

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        categories = [
            c for c in self._categories
            if transaction_type is None or c.type == transaction_type
        ]
        return sorted(categories, key=lambda c: c.name)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
