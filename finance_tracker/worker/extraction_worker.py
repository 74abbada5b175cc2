"""
Extraction Worker

A stateless unit that turns one pending receipt into extracted data.

FLOW:
1. Claim the receipt: conditional pending -> processing
2. Run the extractor on the stored file reference
3. Success: conditional processing -> completed, with the payload, in one write
4. Failure: best-effort processing -> failed, then raise

DESIGN DECISION: The claim is a compare-and-swap, never an overwrite.
Two invocations for the same receipt cannot both extract it; the loser
gets ReceiptAlreadyProcessedError and changes nothing.

KNOWN GAP: if the failure mark itself cannot be written, the record stays
in processing. Nothing here reclaims such records.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.auth import AuthContext
from finance_tracker.errors import (
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
    ReceiptPipelineError,
    UnauthorizedError,
)
from finance_tracker.models.receipt import ExtractedReceiptData, ReceiptStatus
from finance_tracker.services.extraction import ExtractorInterface
from finance_tracker.services.storage import ReceiptStorageInterface


logger = structlog.get_logger(__name__)


class ExtractionWorker:
    """Runs extraction for one receipt on behalf of its owner."""

    def __init__(
        self,
        receipt_storage: ReceiptStorageInterface,
        extractor: ExtractorInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = receipt_storage
        self._extractor = extractor
        self._audit = audit_logger or AuditLogger()

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    async def extract(
        self,
        ctx: Optional[AuthContext],
        receipt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractedReceiptData:
        """
        Extract data for ``receipt_id`` and record the outcome.

        Raises:
            UnauthorizedError: No caller identity (nothing is touched)
            NotFoundError: Receipt missing or owned by someone else
            ReceiptAlreadyProcessedError: Receipt is not pending
            ExtractionError: Extractor failed or returned malformed data
            PersistenceError: A status write failed
        """
        if ctx is None:
            await self._audit.log_unauthorized("No caller identity", receipt_id)
            raise UnauthorizedError("Extraction requires an authenticated caller")

        try:
            record = await self._storage.transition_status(
                ctx,
                receipt_id,
                expected=ReceiptStatus.PENDING,
                target=ReceiptStatus.PROCESSING,
            )
        except ReceiptAlreadyProcessedError as e:
            await self._audit.log_status_conflict(
                receipt_id, ctx.user_id, e.current_status, correlation_id
            )
            raise
        except NotFoundError:
            logger.warning("receipt_not_found", receipt_id=receipt_id, user_id=ctx.user_id)
            raise

        await self._audit.log_extraction_started(receipt_id, ctx.user_id, correlation_id)

        try:
            data = await self._run_extractor(record.file_reference)
        except ExtractionError as e:
            marked = await self._mark_failed(ctx, receipt_id)
            await self._audit.log_extraction_failed(
                receipt_id, ctx.user_id, str(e), marked, correlation_id
            )
            raise

        try:
            await self._storage.transition_status(
                ctx,
                receipt_id,
                expected=ReceiptStatus.PROCESSING,
                target=ReceiptStatus.COMPLETED,
                extracted_data=data,
            )
        except ReceiptPipelineError as e:
            marked = await self._mark_failed(ctx, receipt_id)
            await self._audit.log_extraction_failed(
                receipt_id, ctx.user_id, f"Completion write failed: {e}", marked, correlation_id
            )
            raise PersistenceError(f"Failed to record extraction result: {e}") from e

        await self._audit.log_extraction_completed(receipt_id, ctx.user_id, data, correlation_id)
        return data

    async def _run_extractor(self, file_reference: str) -> ExtractedReceiptData:
        """Run the extractor; every failure comes back as ExtractionError."""
        try:
            result = await self._extractor.extract(file_reference)
            # Extractors may hand back a dict; anything off-schema is a failure
            return ExtractedReceiptData.model_validate(
                result.to_payload() if isinstance(result, ExtractedReceiptData) else result
            )
        except ExtractionError:
            raise
        except PydanticValidationError as e:
            raise ExtractionError(f"Extractor returned malformed data: {e}") from e
        except Exception as e:
            raise ExtractionError(f"Extractor failed: {e}") from e

    async def _mark_failed(self, ctx: AuthContext, receipt_id: str) -> bool:
        """Best-effort processing -> failed. Returns whether the mark was written."""
        try:
            await self._storage.transition_status(
                ctx,
                receipt_id,
                expected=ReceiptStatus.PROCESSING,
                target=ReceiptStatus.FAILED,
            )
            return True
        except ReceiptPipelineError as e:
            logger.error(
                "failed_mark_not_written",
                receipt_id=receipt_id,
                error=str(e),
            )
            return False
