"""
Main Orchestrator for the Finance Tracker

This module ties together all the components and defines the
end-to-end receipt submission flow:

    validate → store file → create pending record → extract → return data

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing touches the network before the upload passes validation
- Each step fails with its own typed error and aborts the rest
- A failed submission leaves its record failed, never half-completed
- Every step is audited under one correlation ID

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.auth import AuthContext
from finance_tracker.config import get_settings
from finance_tracker.errors import (
    ExtractionError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
    ReceiptPipelineError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from finance_tracker.models.receipt import (
    ExtractedReceiptData,
    ReceiptFile,
    ReceiptRecord,
    ReceiptStatus,
)
from finance_tracker.queries import SummaryExecutor
from finance_tracker.services.extraction import (
    ExtractorInterface,
    MindeeReceiptExtractor,
    PlaceholderExtractor,
)
from finance_tracker.services.object_store import (
    CloudinaryObjectStore,
    InMemoryObjectStore,
    ObjectStoreInterface,
    generate_object_path,
)
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsReceiptStorage,
    GoogleSheetsTransactionStorage,
    InMemoryReceiptStorage,
    InMemoryTransactionStorage,
    ReceiptStorageInterface,
)
from finance_tracker.transactions import TransactionService
from finance_tracker.validation import UploadValidator
from finance_tracker.worker import (
    ExtractionWorker,
    HttpWorkerClient,
    LocalWorkerClient,
    WorkerClientInterface,
    create_worker_app,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

ProgressListener = Callable[[int], None]


# Progress checkpoints
VALIDATED = 10
STORED = 30
RECORD_CREATED = 50
EXTRACTED = 100


class ProgressReporter:
    """
    Progress of one submission, from 0 to 100.

    Values only go up until a failure resets them to 0. After detach()
    listeners hear nothing more; the submission itself keeps running.
    """

    def __init__(self, listener: Optional[ProgressListener] = None):
        self._listeners: list[ProgressListener] = [listener] if listener else []
        self._value = 0
        self._detached = False
        self.receipt_id: Optional[str] = None  # set once the record exists

    @property
    def value(self) -> int:
        return self._value

    @property
    def detached(self) -> bool:
        return self._detached

    def subscribe(self, listener: ProgressListener) -> None:
        if not self._detached:
            self._listeners.append(listener)

    def detach(self) -> None:
        self._detached = True
        self._listeners.clear()

    def advance(self, value: int) -> None:
        if value <= self._value:
            return
        self._value = min(value, 100)
        self._notify()

    def reset(self) -> None:
        self._value = 0
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._value)
            except Exception as e:
                logger.warning("progress_listener_failed", error=str(e))


class ReceiptUploadFlow:
    """
    Orchestrates the receipt submission flow.

    Flow:
    1. Validate → media type allow-list and size ceiling (no I/O)
    2. Store → bytes go to the object store under a fresh path
    3. Record → a pending Receipt Record points at the stored file
    4. Extract → the worker claims, extracts and completes the record
    5. Return → the extracted payload, for the user to review

    There is no automatic retry. A later failure leaves the stored file
    and the record behind, with the record marked failed.
    """

    def __init__(
        self,
        object_store: ObjectStoreInterface,
        receipt_storage: ReceiptStorageInterface,
        worker_client: WorkerClientInterface,
        validator: Optional[UploadValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        step_timeout: Optional[float] = None,
    ):
        self._object_store = object_store
        self._receipt_storage = receipt_storage
        self._worker_client = worker_client
        self._validator = validator or UploadValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._step_timeout = step_timeout or get_settings().app.step_timeout_seconds

    async def submit_receipt(
        self,
        ctx: AuthContext,
        file: ReceiptFile,
        progress: Optional[ProgressReporter] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractedReceiptData:
        """
        Submit one receipt file and return what was extracted from it.

        Raises:
            ValidationError: Upload rejected before any I/O
            StorageError: File could not be stored
            PersistenceError: Record could not be created
            ExtractionError: Worker failed or returned a non-success response
            UnauthorizedError: Worker refused the caller's identity
        """
        progress = progress or ProgressReporter()
        correlation_id = correlation_id or create_correlation_id()

        try:
            return await self._submit(ctx, file, progress, correlation_id)
        except ReceiptPipelineError as e:
            progress.reset()
            logger.warning(
                "receipt_submission_failed",
                error_type=type(e).__name__,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            raise
        except Exception as e:
            progress.reset()
            logger.error(
                "receipt_submission_crashed",
                error_type=type(e).__name__,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            raise ReceiptPipelineError(f"Receipt submission failed: {e}") from e

    async def _submit(
        self,
        ctx: AuthContext,
        file: ReceiptFile,
        progress: ProgressReporter,
        correlation_id: UUID,
    ) -> ExtractedReceiptData:
        if ctx is None:
            raise UnauthorizedError("Receipt submission requires an authenticated caller")

        try:
            self._validator.validate(file)
        except ValidationError as e:
            await self._audit_logger.log_upload_rejected(
                user_id=ctx.user_id,
                file_name=file.file_name,
                constraint=e.constraint,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise
        progress.advance(VALIDATED)

        # Step 1: store the bytes
        path = generate_object_path(file)
        try:
            address = await self._run_step(
                self._object_store.store(path, file), StorageError, "File upload"
            )
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="object_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        await self._audit_logger.log_file_stored(
            user_id=ctx.user_id,
            file_name=file.file_name,
            file_size=file.size_bytes,
            address=address,
            correlation_id=correlation_id,
        )
        progress.advance(STORED)

        # Step 2: create the pending record
        record = await self._run_step(
            self._create_record(ctx, file, address),
            PersistenceError,
            "Receipt record creation",
        )
        progress.receipt_id = record.id
        await self._audit_logger.log_record_created(
            receipt_id=record.id,
            user_id=ctx.user_id,
            file_name=file.file_name,
            correlation_id=correlation_id,
        )
        progress.advance(RECORD_CREATED)

        # Step 3: extraction
        try:
            data = await self._run_step(
                self._worker_client.process_receipt(ctx, record.id, correlation_id),
                ExtractionError,
                "Receipt extraction",
            )
        except (ExtractionError, UnauthorizedError) as e:
            await self._abandon(ctx, record.id, e, correlation_id)
            raise
        except ReceiptPipelineError as e:
            await self._abandon(ctx, record.id, e, correlation_id)
            raise ExtractionError(str(e), user_message=e.user_message) from e

        progress.advance(EXTRACTED)
        return data

    async def _create_record(
        self,
        ctx: AuthContext,
        file: ReceiptFile,
        address: str,
    ) -> ReceiptRecord:
        # A bad address from the store fails here, inside the step guard
        record = ReceiptRecord(
            owner=ctx.user_id,
            file_reference=address,
            file_name=file.file_name,
        )
        return await self._receipt_storage.create_receipt(ctx, record)

    async def _run_step(
        self,
        awaitable: Awaitable[T],
        error_cls: type[ReceiptPipelineError],
        step: str,
    ) -> T:
        """Await one step under the step timeout; foreign errors become ``error_cls``."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._step_timeout)
        except asyncio.TimeoutError as e:
            raise error_cls(f"{step} timed out after {self._step_timeout}s") from e
        except ReceiptPipelineError:
            raise
        except Exception as e:
            raise error_cls(f"{step} failed: {e}") from e

    async def _abandon(
        self,
        ctx: AuthContext,
        receipt_id: str,
        error: ReceiptPipelineError,
        correlation_id: UUID,
    ) -> None:
        """Best-effort mark of a record whose extraction did not come back."""
        marked = False
        try:
            await asyncio.wait_for(
                self._receipt_storage.transition_status(
                    ctx,
                    receipt_id,
                    expected={ReceiptStatus.PENDING, ReceiptStatus.PROCESSING},
                    target=ReceiptStatus.FAILED,
                ),
                timeout=self._step_timeout,
            )
            marked = True
        except ReceiptAlreadyProcessedError as e:
            if e.current_status == ReceiptStatus.FAILED.value:
                # The worker failed the record and audited it already
                logger.info("receipt_already_failed", receipt_id=receipt_id)
                return
            logger.warning(
                "abandon_mark_not_written",
                receipt_id=receipt_id,
                error=str(e),
            )
        except (ReceiptPipelineError, asyncio.TimeoutError) as e:
            # Store unreachable or record gone
            logger.warning(
                "abandon_mark_not_written",
                receipt_id=receipt_id,
                error=str(e),
            )

        await self._audit_logger.log_extraction_failed(
            receipt_id=receipt_id,
            user_id=ctx.user_id,
            error_message=str(error),
            marked_failed=marked,
            correlation_id=correlation_id,
        )


def create_extractor() -> ExtractorInterface:
    """The extractor selected by APP extractor_backend."""
    if get_settings().app.extractor_backend == "mindee":
        return MindeeReceiptExtractor()
    return PlaceholderExtractor()


def create_app_components(
    use_storage: bool = True,
) -> tuple[ReceiptUploadFlow, TransactionService, SummaryExecutor]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets and Cloudinary.
                    Set to False for local runs without external services.

    Returns:
        (receipt_upload_flow, transaction_service, summary_executor)
    """
    settings = get_settings()
    receipt_storage = None
    transaction_storage = None
    object_store = None
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            receipt_storage = GoogleSheetsReceiptStorage(sheets_client)
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("record_store_not_configured", error=str(e))
            receipt_storage = None

        try:
            object_store = CloudinaryObjectStore()
        except Exception as e:
            logger.warning("object_store_not_configured", error=str(e))
            object_store = None

    receipt_storage = receipt_storage or InMemoryReceiptStorage()
    transaction_storage = transaction_storage or InMemoryTransactionStorage()
    object_store = object_store or InMemoryObjectStore()
    audit_logger = audit_logger or AuditLogger()  # Local-only logging

    worker_settings = settings.worker
    if worker_settings.url:
        worker_client = HttpWorkerClient(
            worker_settings.url,
            timeout=worker_settings.timeout_seconds,
        )
    else:
        worker = ExtractionWorker(receipt_storage, create_extractor(), audit_logger)
        worker_client = LocalWorkerClient(worker)

    upload_flow = ReceiptUploadFlow(
        object_store=object_store,
        receipt_storage=receipt_storage,
        worker_client=worker_client,
        audit_logger=audit_logger,
    )
    transaction_service = TransactionService(transaction_storage, audit_logger=audit_logger)
    summary_executor = SummaryExecutor(transaction_storage)

    return upload_flow, transaction_service, summary_executor


def create_worker_service_app():
    """
    Build the standalone worker service backed by Google Sheets.

    The worker has to see the same records as the uploading app, so there
    is no in-memory fallback here: a missing Sheets configuration fails
    at startup. Serve with any ASGI server, e.g.

        uvicorn --factory finance_tracker.orchestrator:create_worker_service_app
    """
    sheets_client = GoogleSheetsClient()
    worker = ExtractionWorker(
        GoogleSheetsReceiptStorage(sheets_client),
        create_extractor(),
        AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
    )
    return create_worker_app(worker)
