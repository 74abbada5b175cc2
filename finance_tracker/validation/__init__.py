"""Validation package."""

from finance_tracker.validation.validator import (
    TransactionValidator,
    UploadValidator,
    ValidationIssue,
)

__all__ = ["TransactionValidator", "UploadValidator", "ValidationIssue"]
