"""
Input Validation

DESIGN DECISION: Validation happens BEFORE any I/O and never silently
fixes anything. Each check names the constraint it enforces, so a
rejected upload or transaction tells the caller exactly what to change.

Two validators live here:

UPLOAD VALIDATION:
- Media type allow-list (JPEG, PNG, WebP, PDF)
- Size ceiling (10 MiB by default)
- Declared size must match the bytes actually supplied

TRANSACTION VALIDATION:
- Amount must be positive with cent precision
- Category must exist and match the transaction type
- Description length
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from finance_tracker.config import AppSettings, get_settings
from finance_tracker.errors import ValidationError
from finance_tracker.models.receipt import ReceiptFile
from finance_tracker.models.transaction import Category, TransactionDraft


MAX_DESCRIPTION_LENGTH = 500


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    constraint: str = Field(
        ...,
        description="Name of the violated constraint"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class UploadValidator:
    """
    Checks a ReceiptFile against the upload allow-list and size ceiling.

    Used by the orchestrator before any network call, and again by object
    stores before writing bytes.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def allowed_media_types(self) -> list[str]:
        return self._settings.supported_media_types_list

    @property
    def max_size_bytes(self) -> int:
        return self._settings.max_upload_size_bytes

    def check(self, file: ReceiptFile) -> list[ValidationIssue]:
        """Return every issue with ``file`` (empty list when it is acceptable)."""
        issues = []

        if file.media_type not in self.allowed_media_types:
            issues.append(ValidationIssue(
                field="media_type",
                constraint="media_type",
                message=(
                    f"Unsupported file type: {file.media_type or 'unknown'}. "
                    "Please upload an image (JPEG, PNG, WebP) or PDF file."
                ),
            ))

        if file.size_bytes > self.max_size_bytes:
            issues.append(ValidationIssue(
                field="size_bytes",
                constraint="max_size",
                message=(
                    f"File is too large ({file.size_bytes / (1024 * 1024):.1f} MB). "
                    f"Please upload a file smaller than {self._settings.max_upload_size_mb}MB."
                ),
            ))
        elif file.size_bytes == 0:
            issues.append(ValidationIssue(
                field="size_bytes",
                constraint="empty",
                message="The file is empty.",
            ))

        if file.content and len(file.content) != file.size_bytes:
            issues.append(ValidationIssue(
                field="content",
                constraint="size_mismatch",
                message=(
                    f"Declared size ({file.size_bytes} bytes) does not match "
                    f"the uploaded content ({len(file.content)} bytes)."
                ),
            ))

        return issues

    def validate(self, file: ReceiptFile) -> None:
        """
        Raise on the first violated constraint.

        Raises:
            ValidationError: naming the violated constraint
        """
        issues = self.check(file)
        if issues:
            first = issues[0]
            raise ValidationError(first.constraint, first.message)


class TransactionValidator:
    """Checks a TransactionDraft before it is persisted."""

    def check(
        self,
        draft: TransactionDraft,
        categories: list[Category],
    ) -> list[ValidationIssue]:
        issues = []

        if draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                constraint="positive_amount",
                message="Amount must be greater than zero.",
            ))
        elif draft.amount != draft.amount.quantize(Decimal("0.01")):
            issues.append(ValidationIssue(
                field="amount",
                constraint="cent_precision",
                message="Amount cannot have more than two decimal places.",
            ))

        category = next((c for c in categories if c.id == draft.category_id), None)
        if category is None:
            issues.append(ValidationIssue(
                field="category_id",
                constraint="known_category",
                message=f"Unknown category: {draft.category_id}",
            ))
        elif category.type != draft.type:
            issues.append(ValidationIssue(
                field="category_id",
                constraint="category_type",
                message=(
                    f"Category '{category.name}' is for {category.type.value} "
                    f"transactions, not {draft.type.value}."
                ),
            ))

        if len(draft.description) > MAX_DESCRIPTION_LENGTH:
            issues.append(ValidationIssue(
                field="description",
                constraint="description_length",
                message=f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters.",
            ))

        return issues

    def validate(self, draft: TransactionDraft, categories: list[Category]) -> None:
        issues = self.check(draft, categories)
        if issues:
            first = issues[0]
            raise ValidationError(first.constraint, first.message)
