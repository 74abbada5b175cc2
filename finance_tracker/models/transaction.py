"""
Transaction and Category Models

Income/expense transactions are what receipts ultimately turn into.
The summary models are the deterministic aggregates the dashboard
renders; they carry data only, never presentation.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.receipt import Money


class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class Category(BaseModel):
    """
    A transaction category.

    Categories are shared reference data (not per-user) and are typed:
    an expense category cannot be used on an income transaction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4())
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    type: TransactionType
    color: str = Field(
        default="#6b7280",
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Display color"
    )


DEFAULT_CATEGORIES: list[Category] = [
    Category(id="salary", name="Salary", type=TransactionType.INCOME, color="#10b981"),
    Category(id="freelance", name="Freelance", type=TransactionType.INCOME, color="#3b82f6"),
    Category(id="investments", name="Investments", type=TransactionType.INCOME, color="#8b5cf6"),
    Category(id="food-dining", name="Food & Dining", type=TransactionType.EXPENSE, color="#f59e0b"),
    Category(id="transportation", name="Transportation", type=TransactionType.EXPENSE, color="#ef4444"),
    Category(id="shopping", name="Shopping", type=TransactionType.EXPENSE, color="#ec4899"),
    Category(id="bills-utilities", name="Bills & Utilities", type=TransactionType.EXPENSE, color="#6366f1"),
    Category(id="healthcare", name="Healthcare", type=TransactionType.EXPENSE, color="#14b8a6"),
    Category(id="entertainment", name="Entertainment", type=TransactionType.EXPENSE, color="#f97316"),
    Category(id="other", name="Other", type=TransactionType.EXPENSE, color="#6b7280"),
]


class TransactionDraft(BaseModel):
    """
    User-supplied transaction fields, before validation and persistence.

    Deliberately loose: the TransactionValidator reports problems as
    typed errors instead of pydantic errors.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Money
    description: str = ""
    category_id: str
    date: dt.date = Field(default_factory=dt.date.today)
    receipt_id: Optional[str] = Field(
        default=None,
        description="Receipt this draft was created from, if any"
    )


class Transaction(BaseModel):
    """A persisted transaction owned by one user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4())
    )
    owner: str = Field(
        ...,
        min_length=1
    )
    type: TransactionType
    amount: Money = Field(
        ...,
        gt=0,
        decimal_places=2
    )
    description: str = Field(
        default="",
        max_length=500
    )
    category_id: str
    date: dt.date
    receipt_id: Optional[str] = None
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class CategorySpending(BaseModel):
    """Total expenses for one category."""

    name: str
    color: str
    value: Decimal


class MonthlyComparison(BaseModel):
    """Income vs expenses for one calendar month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="YYYY-MM"
    )
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")


class FinancialSummary(BaseModel):
    """Aggregates over a user's transactions in a date range."""

    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    transaction_count: int = Field(ge=0)
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    spending_by_category: list[CategorySpending] = Field(default_factory=list)
    monthly_comparison: list[MonthlyComparison] = Field(default_factory=list)

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses
