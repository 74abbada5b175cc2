"""
Summary Query Engine

DESIGN DECISION: Summaries are DETERMINISTIC aggregates over stored
transactions. Nothing is estimated; an empty range gives zeros.

The dashboard renders exactly what this engine returns:
- total income, total expenses and net balance
- expenses per category (with the category's color)
- income vs expenses per calendar month
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Optional

from finance_tracker.auth import AuthContext
from finance_tracker.models.transaction import (
    CategorySpending,
    FinancialSummary,
    MonthlyComparison,
    Transaction,
    TransactionType,
)
from finance_tracker.services.storage import TransactionStorageInterface


UNCATEGORIZED = "Uncategorized"
UNCATEGORIZED_COLOR = "#6b7280"


class SummaryExecutor:
    """
    Aggregates a user's transactions.

    GUARANTEES:
    - Only reads the caller's own transactions
    - Never invents or estimates
    """

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    async def summarize(
        self,
        ctx: AuthContext,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> FinancialSummary:
        transactions = await self._storage.list_transactions(
            ctx,
            date_from=date_from,
            date_to=date_to,
            limit=None,
        )
        # Oldest first so category order follows first appearance
        transactions = sorted(transactions, key=lambda t: (t.date, t.created_at))

        total_income = sum(
            (t.amount for t in transactions if t.type == TransactionType.INCOME),
            Decimal("0"),
        )
        total_expenses = sum(
            (t.amount for t in transactions if t.type == TransactionType.EXPENSE),
            Decimal("0"),
        )

        return FinancialSummary(
            date_from=date_from,
            date_to=date_to,
            transaction_count=len(transactions),
            total_income=total_income,
            total_expenses=total_expenses,
            spending_by_category=await self._spending_by_category(transactions),
            monthly_comparison=self._monthly_comparison(transactions),
        )

    async def _spending_by_category(
        self,
        transactions: list[Transaction],
    ) -> list[CategorySpending]:
        categories = {c.id: c for c in await self._storage.list_categories()}
        spending: "OrderedDict[str, CategorySpending]" = OrderedDict()

        for txn in transactions:
            if txn.type != TransactionType.EXPENSE:
                continue
            category = categories.get(txn.category_id)
            name = category.name if category else UNCATEGORIZED
            color = category.color if category else UNCATEGORIZED_COLOR

            if name in spending:
                spending[name].value += txn.amount
            else:
                spending[name] = CategorySpending(name=name, color=color, value=txn.amount)

        return list(spending.values())

    def _monthly_comparison(self, transactions: list[Transaction]) -> list[MonthlyComparison]:
        months: dict[str, MonthlyComparison] = {}

        for txn in transactions:
            month = txn.date.strftime("%Y-%m")
            if month not in months:
                months[month] = MonthlyComparison(month=month)
            if txn.type == TransactionType.INCOME:
                months[month].income += txn.amount
            else:
                months[month].expenses += txn.amount

        return [months[m] for m in sorted(months)]
