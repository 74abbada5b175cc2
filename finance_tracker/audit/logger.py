"""
Audit Logger

DESIGN DECISION: Every significant step of a receipt submission is logged.
This provides:
1. Complete traceability of each receipt through its statuses
2. Debugging capability for stuck or failed records
3. User can see history of their uploads

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the pipeline if logging fails)
- Supports correlation IDs to trace one submission end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.models.receipt import ExtractedReceiptData
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An append-only audit store (Sheets in production)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage is None:
            return True

        try:
            stored = await self._storage.append_event(event)
        except Exception as e:
            stored = False
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
        return stored

    async def log_upload_rejected(
        self,
        user_id: str,
        file_name: str,
        constraint: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_upload_rejected(
            user_id=user_id,
            file_name=file_name,
            constraint=constraint,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_file_stored(
        self,
        user_id: str,
        file_name: str,
        file_size: int,
        address: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_file_stored(
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            address=address,
            correlation_id=correlation_id,
        ))

    async def log_record_created(
        self,
        receipt_id: str,
        user_id: str,
        file_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_record_created(
            receipt_id=receipt_id,
            user_id=user_id,
            file_name=file_name,
            correlation_id=correlation_id,
        ))

    async def log_extraction_started(
        self,
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_started(
            receipt_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        receipt_id: str,
        user_id: str,
        data: ExtractedReceiptData,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            receipt_id=receipt_id,
            user_id=user_id,
            merchant=data.merchant,
            total=str(data.total),
            item_count=len(data.items),
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        receipt_id: str,
        user_id: str,
        error_message: str,
        marked_failed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            receipt_id=receipt_id,
            user_id=user_id,
            error_message=error_message,
            marked_failed=marked_failed,
            correlation_id=correlation_id,
        ))

    async def log_status_conflict(
        self,
        receipt_id: str,
        user_id: str,
        current_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.status_conflict(
            receipt_id=receipt_id,
            user_id=user_id,
            current_status=current_status,
            correlation_id=correlation_id,
        ))

    async def log_unauthorized(
        self,
        reason: str,
        receipt_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.unauthorized_invocation(
            reason=reason,
            receipt_id=receipt_id,
        ))

    async def log_transaction_created(
        self,
        transaction_id: str,
        user_id: str,
        transaction_type: str,
        amount: str,
        receipt_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            receipt_id=receipt_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., receipt upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
