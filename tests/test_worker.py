"""Tests for the extraction worker (in-process)."""

import asyncio
import random
import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.errors import (
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
    UnauthorizedError,
)
from finance_tracker.models import ReceiptStatus
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.extraction import ExtractorInterface, PlaceholderExtractor
from finance_tracker.services.storage import InMemoryReceiptStorage
from finance_tracker.worker import ExtractionWorker


class FailingExtractor(ExtractorInterface):

    async def extract(self, file_reference):
        raise RuntimeError("OCR backend exploded")


class RawExtractor(ExtractorInterface):
    """Returns whatever it was given, bypassing the model."""

    def __init__(self, payload):
        self.payload = payload

    async def extract(self, file_reference):
        return self.payload


class CompletionFailsStorage(InMemoryReceiptStorage):

    async def transition_status(self, ctx, receipt_id, expected, target, **changes):
        if target == ReceiptStatus.COMPLETED:
            raise PersistenceError("sheet is read-only")
        return await super().transition_status(ctx, receipt_id, expected, target, **changes)


def placeholder():
    return PlaceholderExtractor(rng=random.Random(1), clock=lambda: date(2024, 1, 15))


class TestExtractionWorker:

    def test_success_completes_record(self, ctx, receipt_storage, audit_logger, audit_storage, pending_record):
        worker = ExtractionWorker(receipt_storage, placeholder(), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            data = await worker.extract(ctx, pending_record.id)
            return data, await receipt_storage.get_receipt(ctx, pending_record.id)

        data, record = asyncio.run(run())
        assert record.status == ReceiptStatus.COMPLETED
        assert record.extracted_data == data
        assert data.merchant == "Sample Store"
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.EXTRACTION_STARTED,
            AuditEventType.EXTRACTION_COMPLETED,
        ]

    def test_missing_receipt_is_not_found(self, ctx, receipt_storage, audit_logger):
        """A receipt id that does not exist changes nothing."""
        worker = ExtractionWorker(receipt_storage, placeholder(), audit_logger)

        with pytest.raises(NotFoundError):
            asyncio.run(worker.extract(ctx, "does-not-exist"))
        assert asyncio.run(receipt_storage.list_receipts(ctx)) == []

    def test_other_users_receipt_is_not_found(self, ctx, other_ctx, receipt_storage, audit_logger, pending_record):
        worker = ExtractionWorker(receipt_storage, placeholder(), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            with pytest.raises(NotFoundError):
                await worker.extract(other_ctx, pending_record.id)
            return await receipt_storage.get_receipt(ctx, pending_record.id)

        assert asyncio.run(run()).status == ReceiptStatus.PENDING

    def test_extractor_failure_marks_failed(self, ctx, receipt_storage, audit_logger, audit_storage, pending_record):
        """Extractor throws: record ends failed, with no extracted data."""
        worker = ExtractionWorker(receipt_storage, FailingExtractor(), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            with pytest.raises(ExtractionError, match="exploded"):
                await worker.extract(ctx, pending_record.id)
            return await receipt_storage.get_receipt(ctx, pending_record.id)

        record = asyncio.run(run())
        assert record.status == ReceiptStatus.FAILED
        assert record.extracted_data is None
        failed = [e for e in audit_storage.events if e.event_type == AuditEventType.EXTRACTION_FAILED]
        assert failed[0].details["marked_failed"] is True

    def test_malformed_output_is_extraction_failure(self, ctx, receipt_storage, audit_logger, pending_record):
        payload = {"total": "-5.00", "date": "2024-01-01", "merchant": "X", "items": []}
        worker = ExtractionWorker(receipt_storage, RawExtractor(payload), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            with pytest.raises(ExtractionError):
                await worker.extract(ctx, pending_record.id)
            return await receipt_storage.get_receipt(ctx, pending_record.id)

        assert asyncio.run(run()).status == ReceiptStatus.FAILED

    def test_dict_output_is_accepted_when_valid(self, ctx, receipt_storage, audit_logger, pending_record):
        payload = {"total": 9.99, "date": "2024-01-01", "merchant": "X", "items": []}
        worker = ExtractionWorker(receipt_storage, RawExtractor(payload), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            return await worker.extract(ctx, pending_record.id)

        assert asyncio.run(run()).total == Decimal("9.99")

    def test_reinvoking_completed_receipt_is_rejected(self, ctx, receipt_storage, audit_logger, pending_record):
        worker = ExtractionWorker(
            receipt_storage,
            PlaceholderExtractor(rng=random.Random(), clock=date.today),
            audit_logger,
        )

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            first = await worker.extract(ctx, pending_record.id)
            with pytest.raises(ReceiptAlreadyProcessedError) as exc:
                await worker.extract(ctx, pending_record.id)
            record = await receipt_storage.get_receipt(ctx, pending_record.id)
            return first, exc.value, record

        first, error, record = asyncio.run(run())
        assert error.current_status == "completed"
        assert record.extracted_data == first

    def test_concurrent_invocations_extract_once(self, ctx, receipt_storage, audit_logger, pending_record):
        worker = ExtractionWorker(receipt_storage, placeholder(), audit_logger)

        async def attempt():
            try:
                await worker.extract(ctx, pending_record.id)
                return "ok"
            except ReceiptAlreadyProcessedError:
                return "conflict"

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            return await asyncio.gather(attempt(), attempt(), attempt())

        assert sorted(asyncio.run(run())) == ["conflict", "conflict", "ok"]

    def test_completion_write_failure_is_persistence_error(self, ctx, audit_logger, pending_record):
        storage = CompletionFailsStorage()
        worker = ExtractionWorker(storage, placeholder(), audit_logger)

        async def run():
            await storage.create_receipt(ctx, pending_record)
            with pytest.raises(PersistenceError):
                await worker.extract(ctx, pending_record.id)
            return await storage.get_receipt(ctx, pending_record.id)

        record = asyncio.run(run())
        assert record.status == ReceiptStatus.FAILED
        assert record.extracted_data is None

    def test_no_identity_is_unauthorized(self, ctx, receipt_storage, audit_logger, audit_storage, pending_record):
        worker = ExtractionWorker(receipt_storage, placeholder(), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            with pytest.raises(UnauthorizedError):
                await worker.extract(None, pending_record.id)
            return await receipt_storage.get_receipt(ctx, pending_record.id)

        assert asyncio.run(run()).status == ReceiptStatus.PENDING
        assert audit_storage.events[-1].event_type == AuditEventType.UNAUTHORIZED_INVOCATION

    def test_amounts_are_served_with_cents(self, ctx, receipt_storage, audit_logger, pending_record):
        payload = {
            "total": 5,
            "date": "2024-01-01",
            "merchant": "X",
            "items": [{"name": "a", "price": 12.5}],
        }
        worker = ExtractionWorker(receipt_storage, RawExtractor(payload), audit_logger)

        async def run():
            await receipt_storage.create_receipt(ctx, pending_record)
            data = await worker.extract(ctx, pending_record.id)
            return data, await receipt_storage.get_receipt(ctx, pending_record.id)

        data, record = asyncio.run(run())
        wire = data.to_payload()
        assert wire["total"] == "5.00"
        assert wire["items"][0]["price"] == "12.50"
        assert record.extracted_data.to_payload()["total"] == "5.00"
