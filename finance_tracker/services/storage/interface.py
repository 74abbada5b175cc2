"""
Abstract Record Store Interface

DESIGN DECISION: We define an abstract interface for record storage.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

ROW-LEVEL POLICY: every receipt and transaction call takes the caller's
AuthContext. Implementations MUST scope reads and writes to records where
owner == ctx.user_id. A record owned by someone else is indistinguishable
from a missing one.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional, Union
from uuid import UUID

from finance_tracker.auth import AuthContext
from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.receipt import ReceiptRecord, ReceiptStatus
from finance_tracker.models.transaction import (
    Category,
    Transaction,
    TransactionType,
)


ExpectedStatus = Union[ReceiptStatus, Iterable[ReceiptStatus]]


def expected_statuses(expected: ExpectedStatus) -> frozenset[ReceiptStatus]:
    if isinstance(expected, ReceiptStatus):
        return frozenset({expected})
    return frozenset(expected)


class ReceiptStorageInterface(ABC):
    """
    Abstract interface for receipt record storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create_receipt(self, ctx: AuthContext, record: ReceiptRecord) -> ReceiptRecord:
        """
        Persist a new receipt record.

        Raises:
            PersistenceError: If the write fails or record.owner != ctx.user_id
        """
        pass

    @abstractmethod
    async def get_receipt(self, ctx: AuthContext, receipt_id: str) -> Optional[ReceiptRecord]:
        """Return the caller's receipt, or None if missing or not theirs."""
        pass

    @abstractmethod
    async def update_receipt(
        self,
        ctx: AuthContext,
        receipt_id: str,
        **changes,
    ) -> ReceiptRecord:
        """
        Partial update: only the named fields change.

        Raises:
            NotFoundError: If the receipt is missing or not the caller's
            PersistenceError: If the write fails, touches an immutable field,
                or makes an illegal status transition
        """
        pass

    @abstractmethod
    async def transition_status(
        self,
        ctx: AuthContext,
        receipt_id: str,
        expected: ExpectedStatus,
        target: ReceiptStatus,
        **changes,
    ) -> ReceiptRecord:
        """
        Conditionally move a receipt to ``target``.

        Succeeds only if the current status is one of ``expected``.
        ``changes`` are written in the same update (e.g. extracted_data
        together with COMPLETED).

        Raises:
            NotFoundError: If the receipt is missing or not the caller's
            ReceiptAlreadyProcessedError: If the current status is not expected
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def list_receipts(
        self,
        ctx: AuthContext,
        status: Optional[ReceiptStatus] = None,
        limit: int = 100,
    ) -> list[ReceiptRecord]:
        """List the caller's receipts, newest first."""
        pass


class TransactionStorageInterface(ABC):
    """Abstract interface for transactions and their categories."""

    @abstractmethod
    async def create_transaction(
        self,
        ctx: AuthContext,
        transaction: Transaction,
    ) -> Transaction:
        """
        Persist a new transaction.

        Raises:
            PersistenceError: If the write fails or transaction.owner != ctx.user_id
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        ctx: AuthContext,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = 100,
    ) -> list[Transaction]:
        """List the caller's transactions, newest first. ``limit=None`` returns all of them."""
        pass

    @abstractmethod
    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """List categories, ordered by name."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one submission, in chronological order."""
        pass
