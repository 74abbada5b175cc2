"""Tests for upload and transaction validation."""

import pytest
from decimal import Decimal

from conftest import make_image_bytes

from finance_tracker.config import AppSettings
from finance_tracker.errors import ValidationError
from finance_tracker.models import DEFAULT_CATEGORIES, ReceiptFile, TransactionDraft, TransactionType
from finance_tracker.services.object_store import verify_content
from finance_tracker.validation import TransactionValidator, UploadValidator


MB = 1024 * 1024


def declared(media_type: str, size: int, content: bytes = b"") -> ReceiptFile:
    return ReceiptFile(file_name="f", media_type=media_type, size_bytes=size, content=content)


class TestUploadValidator:

    @pytest.fixture
    def validator(self):
        return UploadValidator(AppSettings())

    @pytest.mark.parametrize("media_type", ["image/jpeg", "image/png", "image/webp", "application/pdf"])
    def test_accepts_allowed_types(self, validator, media_type):
        assert validator.check(declared(media_type, 2 * MB)) == []

    def test_rejects_text_plain(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(declared("text/plain", 100))
        assert exc.value.constraint == "media_type"

    def test_rejects_over_ten_mib(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(declared("image/jpeg", 11 * MB))
        assert exc.value.constraint == "max_size"

    def test_exactly_ten_mib_is_allowed(self, validator):
        assert validator.check(declared("image/jpeg", 10 * MB)) == []

    def test_rejects_empty_file(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(declared("image/png", 0))
        assert exc.value.constraint == "empty"

    def test_rejects_size_mismatch(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(declared("image/png", 10, content=b"12345"))
        assert exc.value.constraint == "size_mismatch"

    def test_reports_every_issue(self, validator):
        issues = validator.check(declared("text/plain", 11 * MB))
        assert [i.constraint for i in issues] == ["media_type", "max_size"]

    def test_user_message_names_the_problem(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(declared("text/plain", 100))
        assert "text/plain" in exc.value.user_message


class TestContentSniffing:

    def test_matching_jpeg_passes(self):
        content = make_image_bytes("JPEG")
        verify_content(declared("image/jpeg", len(content), content))

    def test_png_declared_as_jpeg_fails(self):
        content = make_image_bytes("PNG")
        with pytest.raises(ValidationError) as exc:
            verify_content(declared("image/jpeg", len(content), content))
        assert exc.value.constraint == "content_type"

    def test_garbage_declared_as_image_fails(self):
        with pytest.raises(ValidationError):
            verify_content(declared("image/png", 4, b"abcd"))

    def test_pdf_magic(self):
        verify_content(declared("application/pdf", 8, b"%PDF-1.7"))
        with pytest.raises(ValidationError):
            verify_content(declared("application/pdf", 8, b"not-pdf!"))


class TestTransactionValidator:

    @pytest.fixture
    def validator(self):
        return TransactionValidator()

    def draft(self, **overrides) -> TransactionDraft:
        data = {
            "type": TransactionType.EXPENSE,
            "amount": Decimal("12.50"),
            "category_id": "food-dining",
        }
        data.update(overrides)
        return TransactionDraft(**data)

    def test_valid_expense(self, validator):
        assert validator.check(self.draft(), DEFAULT_CATEGORIES) == []

    def test_rejects_non_positive_amount(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(self.draft(amount=Decimal("0")), DEFAULT_CATEGORIES)
        assert exc.value.constraint == "positive_amount"

    def test_rejects_fractional_cents(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(self.draft(amount=Decimal("1.005")), DEFAULT_CATEGORIES)
        assert exc.value.constraint == "cent_precision"

    def test_rejects_unknown_category(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(self.draft(category_id="nope"), DEFAULT_CATEGORIES)
        assert exc.value.constraint == "known_category"

    def test_rejects_income_category_on_expense(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(self.draft(category_id="salary"), DEFAULT_CATEGORIES)
        assert exc.value.constraint == "category_type"

    def test_rejects_long_description(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate(self.draft(description="x" * 501), DEFAULT_CATEGORIES)
        assert exc.value.constraint == "description_length"
