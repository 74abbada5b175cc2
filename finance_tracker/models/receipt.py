"""
Receipt Pipeline Models

These models define the strict schemas for everything flowing through the
receipt pipeline:
1. The uploaded file (before any I/O)
2. The extracted payload (what the extractor returns)
3. The persisted Receipt Record and its status machine

DESIGN DECISION: The status machine lives on the model, not in the
services. Storage backends and the worker both ask the model whether a
transition is legal, so there is exactly one definition of it.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, ClassVar, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Any:
    """
    Coerce floats and ints to Decimal through their string form.

    Decimal(15.99) carries binary noise; Decimal("15.99") does not.
    Anything else is passed through for pydantic to judge.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (float, int)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return value
    return value


def pad_to_cents(value: Decimal) -> Decimal:
    """
    Give whole and one-decimal amounts their two cent digits.

    5 becomes 5.00 and 12.5 becomes 12.50. Amounts with finer precision
    are left alone so the field's decimal_places check still rejects them.
    """
    if value.is_finite() and value.as_tuple().exponent >= -2:
        return value.quantize(CENTS)
    return value


Money = Annotated[Decimal, BeforeValidator(to_decimal), AfterValidator(pad_to_cents)]


# =============================================================================
# STATUS MACHINE
# =============================================================================

class ReceiptStatus(str, Enum):
    """
    Receipt processing status.

    pending → processing → completed | failed
    pending → failed (abandoned before the worker picked it up)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReceiptStatus.COMPLETED, ReceiptStatus.FAILED)

    def can_transition_to(self, target: "ReceiptStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[ReceiptStatus, frozenset[ReceiptStatus]] = {
    ReceiptStatus.PENDING: frozenset({ReceiptStatus.PROCESSING, ReceiptStatus.FAILED}),
    ReceiptStatus.PROCESSING: frozenset({ReceiptStatus.COMPLETED, ReceiptStatus.FAILED}),
    ReceiptStatus.COMPLETED: frozenset(),
    ReceiptStatus.FAILED: frozenset(),
}


# =============================================================================
# EXTRACTED DATA
# =============================================================================

class ReceiptItem(BaseModel):
    """A single line on a receipt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        max_length=200,
        description="Item name as printed"
    )
    price: Money = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Item price"
    )


class ExtractedReceiptData(BaseModel):
    """
    Structured payload produced by an extractor.

    Wire shape: {total, date, merchant, items: [{name, price}]}.
    ``items`` may be empty but is always present.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    total: Money = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Receipt total"
    )
    date: dt.date = Field(
        ...,
        description="Purchase date (ISO calendar date)"
    )
    merchant: str = Field(
        ...,
        max_length=200,
        description="Merchant name"
    )
    items: list[ReceiptItem] = Field(
        ...,
        description="Line items, in printed order"
    )

    def to_payload(self) -> dict:
        """JSON-safe dict in wire shape."""
        return self.model_dump(mode="json")


# =============================================================================
# UPLOAD
# =============================================================================

class ReceiptFile(BaseModel):
    """
    A file handed to the orchestrator, before any I/O.

    This model only records what the client declared. Allow-list and size
    checks live in the validator so violations become typed errors rather
    than pydantic errors.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    file_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Original client-supplied file name"
    )
    media_type: str = Field(
        ...,
        description="Declared media type"
    )
    size_bytes: int = Field(
        ...,
        ge=0,
        description="Declared size in bytes"
    )
    content: bytes = Field(
        default=b"",
        repr=False,
        description="File bytes"
    )

    @field_validator("media_type")
    @classmethod
    def normalize_media_type(cls, v: str) -> str:
        # "image/JPEG; charset=binary" -> "image/jpeg"
        return v.split(";", 1)[0].strip().lower()

    @property
    def extension(self) -> str:
        """Lower-cased extension of the original name, without the dot."""
        if "." not in self.file_name:
            return ""
        return self.file_name.rsplit(".", 1)[1].lower()


# =============================================================================
# RECEIPT RECORD
# =============================================================================

class ReceiptRecord(BaseModel):
    """
    Persisted entity tracking one uploaded receipt through the pipeline.

    INVARIANTS:
    - extracted_data is set if and only if status is COMPLETED
    - id, owner, file_reference and created_at never change
    """

    IMMUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"id", "owner", "file_reference", "created_at"})

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique receipt ID"
    )
    owner: str = Field(
        ...,
        min_length=1,
        description="ID of the user who owns this record"
    )
    file_reference: str = Field(
        ...,
        min_length=1,
        description="Retrievable address of the stored file"
    )
    file_name: str = Field(
        ...,
        description="Original file name (display only)"
    )
    status: ReceiptStatus = Field(
        default=ReceiptStatus.PENDING,
        description="Processing status"
    )
    extracted_data: Optional[ExtractedReceiptData] = Field(
        default=None,
        description="Extraction result, present only when completed"
    )
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
        description="Creation timestamp"
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
        description="Last update timestamp"
    )

    @model_validator(mode='after')
    def validate_extracted_data_matches_status(self) -> 'ReceiptRecord':
        if self.status == ReceiptStatus.COMPLETED and self.extracted_data is None:
            raise ValueError("Completed receipts must carry extracted data")
        if self.status != ReceiptStatus.COMPLETED and self.extracted_data is not None:
            raise ValueError(
                f"Extracted data is only allowed on completed receipts (status: {self.status.value})"
            )
        return self

    def with_changes(self, **changes) -> "ReceiptRecord":
        """
        Return a copy with ``changes`` applied.

        Raises ValueError for immutable fields, illegal status transitions,
        or a result that breaks the record invariants.
        """
        immutable = self.IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise ValueError(f"Immutable receipt fields: {', '.join(sorted(immutable))}")

        if "status" in changes:
            target = ReceiptStatus(changes["status"])
            if target != self.status and not self.status.can_transition_to(target):
                raise ValueError(
                    f"Illegal status transition: {self.status.value} -> {target.value}"
                )
            changes["status"] = target

        data = self.model_dump()
        data.update(changes)
        data["updated_at"] = dt.datetime.utcnow()
        return ReceiptRecord.model_validate(data)
