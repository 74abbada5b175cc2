"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the initial record store because:
1. Users can view their receipts and transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a whole row is written in ONE update call so a
  completed status and its extracted data land together
- Conditional status transitions are read-check-write under a
  process-local lock. They are NOT atomic across processes.
- Limited query capabilities (we filter in Python)

gspread is synchronous; every call runs in a worker thread so the event
loop is never blocked.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.auth import AuthContext
from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.errors import (
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
)
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_tracker.models.receipt import (
    ExtractedReceiptData,
    ReceiptRecord,
    ReceiptStatus,
)
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


RECEIPT_COLUMNS = [
    "id",
    "owner",
    "file_reference",
    "file_name",
    "status",
    "extracted_data_json",
    "created_at",
    "updated_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "owner",
    "type",
    "amount",
    "description",
    "category_id",
    "date",
    "receipt_id",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "type",
    "color",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


def _column_letter(count: int) -> str:
    """1 -> A, 8 -> H, 27 -> AA."""
    letters = ""
    while count:
        count, rem = divmod(count - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


@retry(
    retry=retry_if_not_exception_type(PersistenceError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
async def _append_row(get_sheet, row: list) -> None:
    sheet = await asyncio.to_thread(get_sheet)
    await asyncio.to_thread(sheet.append_row, row, value_input_option="RAW")


def _safe_getter(row: list):
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet bootstrapping and retry logic.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise PersistenceError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise PersistenceError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise PersistenceError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(
        self,
        title: str,
        columns: list[str],
        rows: int,
        seed: Optional[list[list]] = None,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            if seed:
                sheet.append_rows(seed, value_input_option="RAW")
            return sheet

    def get_receipts_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.receipts_sheet_name, RECEIPT_COLUMNS, 1000)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 1000
        )

    def get_categories_sheet(self) -> gspread.Worksheet:
        seed = [[c.id, c.name, c.type.value, c.color] for c in DEFAULT_CATEGORIES]
        return self._get_or_create(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, 100, seed=seed
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsReceiptStorage(ReceiptStorageInterface):
    """
    Google Sheets implementation of receipt storage.

    One receipt per row. extracted_data is JSON-serialized.
    The owner column implements the row-level policy.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _record_to_row(self, record: ReceiptRecord) -> list:
        return [
            record.id,
            record.owner,
            record.file_reference,
            record.file_name,
            record.status.value,
            json.dumps(record.extracted_data.to_payload()) if record.extracted_data else "",
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> ReceiptRecord:
        safe_get = _safe_getter(row)
        extracted = None
        if safe_get(5):
            extracted = ExtractedReceiptData.model_validate(json.loads(safe_get(5)))
        return ReceiptRecord(
            id=safe_get(0),
            owner=safe_get(1),
            file_reference=safe_get(2),
            file_name=safe_get(3),
            status=ReceiptStatus(safe_get(4)),
            extracted_data=extracted,
            created_at=datetime.fromisoformat(safe_get(6)),
            updated_at=datetime.fromisoformat(safe_get(7)),
        )

    def _find_row(
        self,
        sheet: gspread.Worksheet,
        ctx: AuthContext,
        receipt_id: str,
    ) -> tuple[int, ReceiptRecord]:
        """Return (1-based row index, record) of the caller's receipt."""
        all_rows = sheet.get_all_values()
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == receipt_id and len(row) > 1 and row[1] == ctx.user_id:
                return idx, self._row_to_record(row)
        raise NotFoundError(f"Receipt not found: {receipt_id}")

    def _write_row(self, sheet: gspread.Worksheet, idx: int, record: ReceiptRecord) -> None:
        # Whole row in one call: status and extracted data change together
        last_col = _column_letter(len(RECEIPT_COLUMNS))
        sheet.update(
            range_name=f"A{idx}:{last_col}{idx}",
            values=[self._record_to_row(record)],
            value_input_option="RAW",
        )

    async def create_receipt(self, ctx: AuthContext, record: ReceiptRecord) -> ReceiptRecord:
        if record.owner != ctx.user_id:
            raise PersistenceError("Receipt owner must be the caller")
        try:
            await _append_row(self._client.get_receipts_sheet, self._record_to_row(record))
            return record
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to create receipt: {e}")

    async def get_receipt(self, ctx: AuthContext, receipt_id: str) -> Optional[ReceiptRecord]:
        try:
            sheet = await asyncio.to_thread(self._client.get_receipts_sheet)
            _, record = await asyncio.to_thread(self._find_row, sheet, ctx, receipt_id)
            return record
        except NotFoundError:
            return None
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to get receipt: {e}")

    def _apply_sync(
        self,
        ctx: AuthContext,
        receipt_id: str,
        expected: Optional[frozenset[ReceiptStatus]],
        changes: dict,
    ) -> ReceiptRecord:
        sheet = self._client.get_receipts_sheet()
        idx, record = self._find_row(sheet, ctx, receipt_id)
        if expected is not None and record.status not in expected:
            raise ReceiptAlreadyProcessedError(receipt_id, record.status.value)
        try:
            updated = record.with_changes(**changes)
        except ValueError as e:
            raise PersistenceError(f"Invalid receipt update: {e}")
        self._write_row(sheet, idx, updated)
        return updated

    async def _apply(
        self,
        ctx: AuthContext,
        receipt_id: str,
        expected: Optional[frozenset[ReceiptStatus]],
        changes: dict,
    ) -> ReceiptRecord:
        async with self._lock:
            try:
                return await asyncio.to_thread(
                    self._apply_sync, ctx, receipt_id, expected, changes
                )
            except (NotFoundError, PersistenceError, ReceiptAlreadyProcessedError):
                raise
            except Exception as e:
                raise PersistenceError(f"Failed to update receipt: {e}")

    async def update_receipt(self, ctx: AuthContext, receipt_id: str, **changes) -> ReceiptRecord:
        return await self._apply(ctx, receipt_id, None, changes)

    async def transition_status(
        self,
        ctx: AuthContext,
        receipt_id: str,
        expected: ExpectedStatus,
        target: ReceiptStatus,
        **changes,
    ) -> ReceiptRecord:
        return await self._apply(
            ctx,
            receipt_id,
            expected_statuses(expected),
            {"status": target, **changes},
        )

    async def list_receipts(
        self,
        ctx: AuthContext,
        status: Optional[ReceiptStatus] = None,
        limit: int = 100,
    ) -> list[ReceiptRecord]:
        try:
            sheet = await asyncio.to_thread(self._client.get_receipts_sheet)
            all_rows = (await asyncio.to_thread(sheet.get_all_values))[1:]  # Skip header
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list receipts: {e}")

        records = []
        for row in all_rows:
            if not row or len(row) < 2 or row[1] != ctx.user_id:
                continue
            try:
                record = self._row_to_record(row)
            except Exception:
                continue  # Skip malformed rows
            if status and record.status != status:
                continue
            records.append(record)

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """Google Sheets implementation of transaction and category storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, txn: Transaction) -> list:
        return [
            txn.id,
            txn.owner,
            txn.type.value,
            str(txn.amount),
            txn.description,
            txn.category_id,
            txn.date.isoformat(),
            txn.receipt_id or "",
            txn.created_at.isoformat(),
            txn.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _safe_getter(row)
        return Transaction(
            id=safe_get(0),
            owner=safe_get(1),
            type=TransactionType(safe_get(2)),
            amount=Decimal(safe_get(3)),
            description=safe_get(4),
            category_id=safe_get(5),
            date=date.fromisoformat(safe_get(6)),
            receipt_id=safe_get(7) or None,
            created_at=datetime.fromisoformat(safe_get(8)),
            updated_at=datetime.fromisoformat(safe_get(9)),
        )

    async def create_transaction(self, ctx: AuthContext, transaction: Transaction) -> Transaction:
        if transaction.owner != ctx.user_id:
            raise PersistenceError("Transaction owner must be the caller")
        try:
            await _append_row(
                self._client.get_transactions_sheet,
                self._transaction_to_row(transaction),
            )
            return transaction
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save transaction: {e}")

    async def list_transactions(
        self,
        ctx: AuthContext,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = 100,
    ) -> list[Transaction]:
        try:
            sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
            all_rows = (await asyncio.to_thread(sheet.get_all_values))[1:]
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list transactions: {e}")

        transactions = []
        for row in all_rows:
            if not row or len(row) < 2 or row[1] != ctx.user_id:
                continue
            try:
                txn = self._row_to_transaction(row)
            except Exception:
                continue  # Skip malformed rows

            if transaction_type and txn.type != transaction_type:
                continue
            if category_id and txn.category_id != category_id:
                continue
            if date_from and txn.date < date_from:
                continue
            if date_to and txn.date > date_to:
                continue
            transactions.append(txn)

        # Sort by date descending (newest first)
        transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return transactions[:limit]

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        try:
            sheet = await asyncio.to_thread(self._client.get_categories_sheet)
            all_rows = (await asyncio.to_thread(sheet.get_all_values))[1:]
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list categories: {e}")

        categories = []
        for row in all_rows:
            safe_get = _safe_getter(row)
            try:
                category = Category(
                    id=safe_get(0),
                    name=safe_get(1),
                    type=TransactionType(safe_get(2)),
                    color=safe_get(3, "#6b7280"),
                )
            except Exception:
                continue
            if transaction_type and category.type != transaction_type:
                continue
            categories.append(category)

        return sorted(categories, key=lambda c: c.name)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are reported, never raised."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            await asyncio.to_thread(
                sheet.append_row, event.to_sheets_row(), value_input_option="RAW"
            )
            return True
        except Exception:
            # Don't raise - audit logging should not break the main flow.
            # AuditLogger records the False return locally.
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            all_rows = (await asyncio.to_thread(sheet.get_all_values))[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 7 and row[7] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events
