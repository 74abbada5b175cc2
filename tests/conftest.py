"""
Shared test fixtures and fakes.

No test talks to a real external service: every collaborator is the
in-memory implementation, and auth settings come from the environment
set below.
"""

import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-key-for-finance-tracker-0123")
os.environ.setdefault("AUTH_AUDIENCE", "authenticated")

from io import BytesIO  # noqa: E402

import pytest  # noqa: E402
from PIL import Image  # noqa: E402

from finance_tracker.audit import AuditLogger  # noqa: E402
from finance_tracker.auth import AuthContext, create_access_token  # noqa: E402
from finance_tracker.config import get_settings  # noqa: E402
from finance_tracker.models import DEFAULT_CATEGORIES, ReceiptFile, ReceiptRecord  # noqa: E402
from finance_tracker.services.storage import (  # noqa: E402
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
    InMemoryTransactionStorage,
)
from finance_tracker.services.storage.google_sheets import (  # noqa: E402
    AUDIT_COLUMNS,
    CATEGORY_COLUMNS,
    RECEIPT_COLUMNS,
    TRANSACTION_COLUMNS,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ctx() -> AuthContext:
    return AuthContext(user_id="user-1", access_token=create_access_token("user-1"))


@pytest.fixture
def other_ctx() -> AuthContext:
    return AuthContext(user_id="user-2", access_token=create_access_token("user-2"))


@pytest.fixture
def receipt_storage() -> InMemoryReceiptStorage:
    return InMemoryReceiptStorage()


@pytest.fixture
def transaction_storage() -> InMemoryTransactionStorage:
    return InMemoryTransactionStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def pending_record(ctx) -> ReceiptRecord:
    return ReceiptRecord(
        owner=ctx.user_id,
        file_reference="memory://receipts/abc.jpg",
        file_name="lunch.jpg",
    )


def make_image_bytes(fmt: str = "JPEG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color="white").save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def jpeg_file() -> ReceiptFile:
    content = make_image_bytes("JPEG")
    return ReceiptFile(
        file_name="receipt.jpg",
        media_type="image/jpeg",
        size_bytes=len(content),
        content=content,
    )


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header, rows=None):
        self.rows = [list(header)] + [list(r) for r in rows or []]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values, value_input_option=None):
        start = range_name.split(":")[0]
        idx = int("".join(ch for ch in start if ch.isdigit()))
        self.rows[idx - 1] = list(values[0])


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient with one in-memory worksheet per tab."""

    def __init__(self):
        self.receipts = FakeWorksheet(RECEIPT_COLUMNS)
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.categories = FakeWorksheet(
            CATEGORY_COLUMNS,
            [[c.id, c.name, c.type.value, c.color] for c in DEFAULT_CATEGORIES],
        )
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_receipts_sheet(self):
        return self.receipts

    def get_transactions_sheet(self):
        return self.transactions

    def get_categories_sheet(self):
        return self.categories

    def get_audit_sheet(self):
        return self.audit
