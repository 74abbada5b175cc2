"""
Extraction Services Package

The pluggable capability that turns a stored receipt into structured data.
"""

from finance_tracker.services.extraction.interface import ExtractorInterface
from finance_tracker.services.extraction.placeholder import PlaceholderExtractor
from finance_tracker.services.extraction.mindee_extractor import MindeeReceiptExtractor

__all__ = [
    "ExtractorInterface",
    "MindeeReceiptExtractor",
    "PlaceholderExtractor",
]
