"""Tests for transactions and summary queries."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.errors import ValidationError
from finance_tracker.models import (
    ExtractedReceiptData,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finance_tracker.models.audit import AuditEventType
from finance_tracker.queries import SummaryExecutor
from finance_tracker.transactions import TransactionService, draft_from_receipt


def expense(amount, category_id, on, description=""):
    return TransactionDraft(
        type=TransactionType.EXPENSE,
        amount=Decimal(amount),
        category_id=category_id,
        date=on,
        description=description,
    )


def income(amount, on, category_id="salary"):
    return TransactionDraft(
        type=TransactionType.INCOME,
        amount=Decimal(amount),
        category_id=category_id,
        date=on,
    )


class TestTransactionService:

    @pytest.fixture
    def service(self, transaction_storage, audit_logger):
        return TransactionService(transaction_storage, audit_logger=audit_logger)

    def test_create_transaction(self, service, ctx, audit_storage):
        saved = asyncio.run(service.create_transaction(ctx, expense("12.50", "food-dining", date(2024, 3, 3))))

        assert saved.owner == ctx.user_id
        assert saved.amount == Decimal("12.50")
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSACTION_CREATED

    def test_invalid_draft_is_not_saved(self, service, ctx):
        with pytest.raises(ValidationError):
            asyncio.run(service.create_transaction(ctx, expense("5.00", "salary", date(2024, 3, 3))))
        assert asyncio.run(service.list_transactions(ctx)) == []

    def test_list_is_newest_first_and_per_user(self, service, ctx, other_ctx):
        async def run():
            await service.create_transaction(ctx, expense("1.00", "other", date(2024, 1, 1)))
            await service.create_transaction(ctx, expense("2.00", "other", date(2024, 2, 1)))
            await service.create_transaction(other_ctx, expense("3.00", "other", date(2024, 3, 1)))
            return await service.list_transactions(ctx)

        transactions = asyncio.run(run())
        assert [t.amount for t in transactions] == [Decimal("2.00"), Decimal("1.00")]

    def test_list_filters(self, service, ctx):
        async def run():
            await service.create_transaction(ctx, expense("1.00", "other", date(2024, 1, 1)))
            await service.create_transaction(ctx, income("100.00", date(2024, 1, 2)))
            await service.create_transaction(ctx, expense("7.00", "shopping", date(2024, 2, 1)))
            return (
                await service.list_transactions(ctx, transaction_type=TransactionType.INCOME),
                await service.list_transactions(ctx, category_id="shopping"),
                await service.list_transactions(ctx, date_from=date(2024, 1, 2), date_to=date(2024, 1, 31)),
            )

        incomes, shopping, january = asyncio.run(run())
        assert [t.amount for t in incomes] == [Decimal("100.00")]
        assert [t.amount for t in shopping] == [Decimal("7.00")]
        assert [t.amount for t in january] == [Decimal("100.00")]

    def test_categories_by_type(self, service):
        income_categories = asyncio.run(service.list_categories(TransactionType.INCOME))
        assert {c.id for c in income_categories} == {"salary", "freelance", "investments"}


class TestDraftFromReceipt:

    def test_prefills_expense(self):
        extracted = ExtractedReceiptData(
            total=Decimal("39.49"),
            date=date(2024, 4, 2),
            merchant="Sample Store",
            items=[],
        )
        draft = draft_from_receipt(extracted, category_id="shopping", receipt_id="r-1")

        assert draft.type == TransactionType.EXPENSE
        assert draft.amount == Decimal("39.49")
        assert draft.description == "Sample Store"
        assert draft.date == date(2024, 4, 2)
        assert draft.category_id == "shopping"
        assert draft.receipt_id == "r-1"

    def test_defaults_to_other_category(self):
        extracted = ExtractedReceiptData(total="1.00", date="2024-04-02", merchant="X", items=[])
        assert draft_from_receipt(extracted).category_id == "other"


class TestSummaryExecutor:

    def seed(self, ctx, transaction_storage, audit_logger):
        service = TransactionService(transaction_storage, audit_logger=audit_logger)

        async def run():
            await service.create_transaction(ctx, income("1000.00", date(2024, 1, 5)))
            await service.create_transaction(ctx, expense("50.25", "food-dining", date(2024, 1, 10)))
            await service.create_transaction(ctx, expense("20.00", "shopping", date(2024, 2, 1)))
            await service.create_transaction(ctx, expense("9.75", "food-dining", date(2024, 2, 3)))
            await service.create_transaction(ctx, income("200.00", date(2024, 2, 20), "freelance"))

        asyncio.run(run())

    def test_totals(self, ctx, transaction_storage, audit_logger):
        self.seed(ctx, transaction_storage, audit_logger)
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(ctx))

        assert summary.transaction_count == 5
        assert summary.total_income == Decimal("1200.00")
        assert summary.total_expenses == Decimal("80.00")
        assert summary.net_balance == Decimal("1120.00")

    def test_spending_by_category(self, ctx, transaction_storage, audit_logger):
        self.seed(ctx, transaction_storage, audit_logger)
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(ctx))

        spending = {c.name: c.value for c in summary.spending_by_category}
        assert spending == {"Food & Dining": Decimal("60.00"), "Shopping": Decimal("20.00")}
        assert summary.spending_by_category[0].color == "#f59e0b"

    def test_monthly_comparison_sorted(self, ctx, transaction_storage, audit_logger):
        self.seed(ctx, transaction_storage, audit_logger)
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(ctx))

        assert [(m.month, m.income, m.expenses) for m in summary.monthly_comparison] == [
            ("2024-01", Decimal("1000.00"), Decimal("50.25")),
            ("2024-02", Decimal("200.00"), Decimal("29.75")),
        ]

    def test_date_range(self, ctx, transaction_storage, audit_logger):
        self.seed(ctx, transaction_storage, audit_logger)
        summary = asyncio.run(
            SummaryExecutor(transaction_storage).summarize(ctx, date_from=date(2024, 2, 1))
        )
        assert summary.transaction_count == 3
        assert summary.total_income == Decimal("200.00")

    def test_unknown_category_is_uncategorized(self, ctx, transaction_storage):
        orphan = Transaction(
            owner=ctx.user_id,
            type=TransactionType.EXPENSE,
            amount=Decimal("4.00"),
            category_id="deleted-category",
            date=date(2024, 1, 1),
        )
        asyncio.run(transaction_storage.create_transaction(ctx, orphan))
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(ctx))

        assert [(c.name, c.value) for c in summary.spending_by_category] == [
            ("Uncategorized", Decimal("4.00"))
        ]

    def test_empty_range_is_zero(self, ctx, transaction_storage):
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(ctx))
        assert summary.transaction_count == 0
        assert summary.net_balance == Decimal("0")
        assert summary.spending_by_category == []
        assert summary.monthly_comparison == []

    def test_only_own_transactions(self, ctx, other_ctx, transaction_storage, audit_logger):
        self.seed(ctx, transaction_storage, audit_logger)
        summary = asyncio.run(SummaryExecutor(transaction_storage).summarize(other_ctx))
        assert summary.transaction_count == 0

    def test_counts_every_transaction(self, ctx, transaction_storage):
        async def run():
            for day in range(1, 29):
                for _ in range(6):
                    txn = Transaction(
                        owner=ctx.user_id,
                        type=TransactionType.EXPENSE,
                        amount=Decimal("1.00"),
                        category_id="other",
                        date=date(2024, 2, day),
                    )
                    await transaction_storage.create_transaction(ctx, txn)
            listed = await transaction_storage.list_transactions(ctx)
            summary = await SummaryExecutor(transaction_storage).summarize(ctx)
            return listed, summary

        listed, summary = asyncio.run(run())
        assert len(listed) == 100
        assert summary.transaction_count == 168
        assert summary.total_expenses == Decimal("168.00")
