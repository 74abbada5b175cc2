"""
Placeholder extractor.

Stands in for OCR until a real backend is configured. The output is
random but well-formed, and both the random source and the clock are
injected so tests can pin them.
"""

import random
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from finance_tracker.models.receipt import (
    CENTS,
    ExtractedReceiptData,
    ReceiptItem,
)
from finance_tracker.services.extraction.interface import ExtractorInterface


PLACEHOLDER_MERCHANT = "Sample Store"

PLACEHOLDER_ITEMS = [
    ("Item 1", Decimal("15.99")),
    ("Item 2", Decimal("23.50")),
]

# Upper bound of the random total, in currency units
MAX_PLACEHOLDER_TOTAL = 100


class PlaceholderExtractor(ExtractorInterface):
    """Returns a random total, today's date and two fixed items."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self._rng = rng or random.Random()
        self._clock = clock or date.today

    async def extract(self, file_reference: str) -> ExtractedReceiptData:
        cents = self._rng.randint(0, MAX_PLACEHOLDER_TOTAL * 100)
        total = (Decimal(cents) / 100).quantize(CENTS)
        return ExtractedReceiptData(
            total=total,
            date=self._clock(),
            merchant=PLACEHOLDER_MERCHANT,
            items=[ReceiptItem(name=name, price=price) for name, price in PLACEHOLDER_ITEMS],
        )
