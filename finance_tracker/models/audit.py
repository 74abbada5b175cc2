"""
Audit Models for Finance Tracker

Every significant step of the receipt pipeline is logged for audit purposes.
This provides:
1. Complete traceability of every submission
2. Debugging information when a receipt gets stuck
3. A record of who touched which receipt

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the receipt pipeline has its own event type.
    """
    # Upload
    RECEIPT_UPLOAD_REJECTED = "receipt_upload_rejected"
    RECEIPT_FILE_STORED = "receipt_file_stored"
    RECEIPT_RECORD_CREATED = "receipt_record_created"

    # Extraction
    EXTRACTION_STARTED = "extraction_started"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    STATUS_CONFLICT = "status_conflict"
    UNAUTHORIZED_INVOCATION = "unauthorized_invocation"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="Caller the event was recorded for"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'receipt', 'file', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.receipt_record_created(receipt_id, user_id, file_name, cid)
        event = AuditEventBuilder.extraction_failed(receipt_id, user_id, "timeout", cid)
    """

    @staticmethod
    def receipt_upload_rejected(
        user_id: str,
        file_name: str,
        constraint: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOAD_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="file",
            correlation_id=correlation_id,
            description=f"Upload rejected: {file_name}",
            details={
                "file_name": file_name,
                "constraint": constraint,
            },
            error_message=reason,
        )

    @staticmethod
    def receipt_file_stored(
        user_id: str,
        file_name: str,
        file_size: int,
        address: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_FILE_STORED,
            user_id=user_id,
            entity_type="file",
            correlation_id=correlation_id,
            description=f"Receipt file stored: {file_name}",
            details={
                "file_name": file_name,
                "file_size_bytes": file_size,
                "address": address,
            },
        )

    @staticmethod
    def receipt_record_created(
        receipt_id: str,
        user_id: str,
        file_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_RECORD_CREATED,
            user_id=user_id,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description=f"Receipt record created for {file_name}",
            details={
                "file_name": file_name,
                "status": "pending",
            },
        )

    @staticmethod
    def extraction_started(
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_STARTED,
            user_id=user_id,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description="Receipt moved to processing",
        )

    @staticmethod
    def extraction_completed(
        receipt_id: str,
        user_id: str,
        merchant: str,
        total: str,
        item_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            user_id=user_id,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description=f"Receipt extracted: {merchant} - {total}",
            details={
                "merchant": merchant,
                "total": total,
                "item_count": item_count,
            },
        )

    @staticmethod
    def extraction_failed(
        receipt_id: str,
        user_id: str,
        error_message: str,
        marked_failed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description="Receipt extraction failed",
            details={
                # False means the record may be stuck in processing
                "marked_failed": marked_failed,
            },
            error_message=error_message,
        )

    @staticmethod
    def status_conflict(
        receipt_id: str,
        user_id: str,
        current_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_CONFLICT,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description=f"Extraction rejected: receipt already {current_status}",
            details={
                "current_status": current_status,
            },
        )

    @staticmethod
    def unauthorized_invocation(
        reason: str,
        receipt_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_INVOCATION,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            entity_id=receipt_id,
            description="Worker invoked without a valid identity",
            error_message=reason,
        )

    @staticmethod
    def transaction_created(
        transaction_id: str,
        user_id: str,
        transaction_type: str,
        amount: str,
        receipt_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
                "receipt_id": receipt_id,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
