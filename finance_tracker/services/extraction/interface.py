"""
Abstract Extractor Interface

DESIGN DECISION: Extraction is a capability, not a hardcoded step.
The worker only knows "file reference in, ExtractedReceiptData out".
This lets us:
1. Run a deterministic placeholder in development and tests
2. Plug in real OCR (Mindee) without touching the worker
3. Inject randomness and clocks instead of reaching for globals
"""

from abc import ABC, abstractmethod

from finance_tracker.models.receipt import ExtractedReceiptData


class ExtractorInterface(ABC):
    """Turns a stored receipt file into structured data."""

    @abstractmethod
    async def extract(self, file_reference: str) -> ExtractedReceiptData:
        """
        Extract structured data from the file at ``file_reference``.

        Raises:
            ExtractionError: If nothing usable can be extracted
        """
        pass
