"""
Receipt extraction using Mindee

DESIGN DECISION: We use Mindee because:
1. Specialized for financial documents (receipts in particular)
2. Returns STRUCTURED data, not just raw text
3. Fetches the file straight from the object store URL

This extractor handles:
1. Sending the stored receipt's URL to Mindee
2. Parsing the structured response
3. Converting it to our ExtractedReceiptData model

CRITICAL: We FAIL when the total or the date cannot be read.
We do NOT invent values for a receipt we could not read.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from mindee import Client, product
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import MindeeSettings, get_settings
from finance_tracker.errors import ExtractionError
from finance_tracker.models.receipt import (
    CENTS,
    ExtractedReceiptData,
    ReceiptItem,
)
from finance_tracker.services.extraction.interface import ExtractorInterface


UNKNOWN_MERCHANT = "Unknown merchant"


class MindeeReceiptExtractor(ExtractorInterface):
    """
    Extractor backed by the Mindee receipt API.

    IMPORTANT BOUNDARIES:
    1. This extractor ONLY extracts data - it does NOT categorize
    2. Negative or unparseable amounts are dropped, never guessed
    """

    def __init__(self, settings: Optional[MindeeSettings] = None):
        self._settings = settings or get_settings().mindee
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=self._settings.api_key)
        return self._client

    def _safe_decimal(self, value) -> Optional[Decimal]:
        """Convert to a non-negative Decimal in cents, or None."""
        if value is None:
            return None
        try:
            # Mindee returns float/None
            amount = Decimal(str(value)).quantize(CENTS)
        except (InvalidOperation, TypeError, ValueError):
            return None
        if amount < 0:
            return None
        return amount

    def _safe_date(self, value) -> Optional[date]:
        """Safely convert a value to date."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            # Try common formats
            for fmt in ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"]:
                try:
                    return datetime.strptime(value, fmt).date()
                except ValueError:
                    continue
        return None

    def _extract_items(self, mindee_items) -> list[ReceiptItem]:
        items = []

        if not mindee_items:
            return items

        for item in mindee_items:
            price = self._safe_decimal(getattr(item, "total_amount", None))
            if price is None:
                continue
            name = getattr(item, "description", None) or "Item"
            items.append(ReceiptItem(name=str(name)[:200], price=price))

        return items

    def _parse(self, file_reference: str):
        client = self._get_client()
        input_source = client.source_from_url(file_reference)
        return client.parse(product.ReceiptV5, input_source)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _predict(self, file_reference: str):
        result = await asyncio.to_thread(self._parse, file_reference)
        return result.document.inference.prediction

    async def extract(self, file_reference: str) -> ExtractedReceiptData:
        """
        Extract structured receipt data from the file at ``file_reference``.

        Raises:
            ExtractionError: If Mindee fails or the total/date are unreadable
        """
        try:
            prediction = await self._predict(file_reference)
        except Exception as e:
            raise ExtractionError(f"Mindee request failed: {e}")

        total = self._safe_decimal(prediction.total_amount.value)
        if total is None:
            raise ExtractionError(
                "No total amount could be read from the receipt",
                user_message=(
                    "Could not read the total from this receipt. "
                    "Please ensure the total is clearly visible in the photo."
                ),
            )

        receipt_date = self._safe_date(prediction.date.value)
        if receipt_date is None:
            raise ExtractionError(
                "No date could be read from the receipt",
                user_message="Could not read the date from this receipt.",
            )

        merchant = prediction.supplier_name.value or UNKNOWN_MERCHANT

        return ExtractedReceiptData(
            total=total,
            date=receipt_date,
            merchant=str(merchant)[:200],
            items=self._extract_items(getattr(prediction, "line_items", None)),
        )
