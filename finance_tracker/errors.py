"""
Error taxonomy for the receipt pipeline.

Every failure that can reach the Upload Orchestrator boundary is one of
these types. Each carries a ``user_message``: the single human-readable
line a UI shows. The exception text itself stays technical.
"""

from typing import Optional


class ReceiptPipelineError(Exception):
    """Base exception for all receipt pipeline errors."""

    user_message = "Failed to process receipt. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(ReceiptPipelineError):
    """
    Input violated a precondition. No side effects happened.

    ``constraint`` names the violated rule (e.g. "media_type", "max_size").
    """

    def __init__(
        self,
        constraint: str,
        message: str,
        user_message: Optional[str] = None,
    ):
        self.constraint = constraint
        super().__init__(message, user_message or message)


class StorageError(ReceiptPipelineError):
    """Object store failure (file bytes could not be stored)."""

    user_message = "Could not upload the receipt file. Please try again."


class PersistenceError(ReceiptPipelineError):
    """Record store failure (create/read/update of a record failed)."""

    user_message = "Could not save the receipt. Please try again."


class UnauthorizedError(ReceiptPipelineError):
    """No valid identity is attached to the request."""

    user_message = "Your session has expired. Please sign in again."


class NotFoundError(ReceiptPipelineError):
    """The referenced record does not exist or is not visible to the caller."""

    user_message = "This receipt could not be found."


class ReceiptAlreadyProcessedError(ReceiptPipelineError):
    """
    Conditional status transition lost: the record is no longer in the
    expected state.
    """

    user_message = "This receipt is already being processed."

    def __init__(self, receipt_id: str, current_status: str):
        self.receipt_id = receipt_id
        self.current_status = current_status
        super().__init__(
            f"Receipt {receipt_id} is already {current_status}"
        )


class ExtractionError(ReceiptPipelineError):
    """Extraction capability failed or the worker returned a non-success response."""

    user_message = "Failed to process receipt. Please try again."

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        self.status_code = status_code
        super().__init__(message, user_message)
