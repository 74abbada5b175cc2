"""
Transaction Service

Creates income/expense transactions on behalf of a user, including
expense drafts prefilled from an extracted receipt.

DESIGN DECISION: A receipt never becomes a transaction on its own.
draft_from_receipt only PREFILLS a draft; the user reviews it and
create_transaction persists it.
"""

from typing import Optional

from finance_tracker.audit import AuditLogger
from finance_tracker.auth import AuthContext
from finance_tracker.models.receipt import ExtractedReceiptData
from finance_tracker.models.transaction import (
    Category,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finance_tracker.services.storage import TransactionStorageInterface
from finance_tracker.validation import TransactionValidator


DEFAULT_RECEIPT_CATEGORY = "other"


def draft_from_receipt(
    extracted: ExtractedReceiptData,
    category_id: str = DEFAULT_RECEIPT_CATEGORY,
    receipt_id: Optional[str] = None,
) -> TransactionDraft:
    """Prefill an expense draft: total as amount, merchant as description."""
    return TransactionDraft(
        type=TransactionType.EXPENSE,
        amount=extracted.total,
        description=extracted.merchant,
        category_id=category_id,
        date=extracted.date,
        receipt_id=receipt_id,
    )


class TransactionService:
    """Validates and persists transactions."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._audit = audit_logger or AuditLogger()

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        return await self._storage.list_categories(transaction_type)

    async def create_transaction(
        self,
        ctx: AuthContext,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Validate ``draft`` and persist it as the caller's transaction.

        Raises:
            ValidationError: If the draft breaks a transaction rule
            PersistenceError: If the write fails
        """
        categories = await self._storage.list_categories()
        self._validator.validate(draft, categories)

        transaction = Transaction(
            owner=ctx.user_id,
            type=draft.type,
            amount=draft.amount,
            description=draft.description,
            category_id=draft.category_id,
            date=draft.date,
            receipt_id=draft.receipt_id,
        )
        saved = await self._storage.create_transaction(ctx, transaction)

        await self._audit.log_transaction_created(
            transaction_id=saved.id,
            user_id=ctx.user_id,
            transaction_type=saved.type.value,
            amount=str(saved.amount),
            receipt_id=saved.receipt_id,
        )
        return saved

    async def list_transactions(self, ctx: AuthContext, **filters) -> list[Transaction]:
        """The caller's transactions, newest first. See TransactionStorageInterface for filters."""
        return await self._storage.list_transactions(ctx, **filters)
