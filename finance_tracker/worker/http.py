"""
HTTP boundary of the extraction worker.

POST /functions/v1/process-receipt
    Authorization: Bearer <jwt>
    {"receipt_id": "..."}

200 {"data": {...}} on success, otherwise {"error": "..."} with the status
code of the failure class. The token is verified before anything else, so
a 401 never has side effects.
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from finance_tracker import __version__
from finance_tracker.auth import TokenVerifier
from finance_tracker.errors import (
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
    ReceiptPipelineError,
    UnauthorizedError,
)
from finance_tracker.worker.extraction_worker import ExtractionWorker


PROCESS_RECEIPT_PATH = "/functions/v1/process-receipt"

STATUS_CODES: dict[type[ReceiptPipelineError], int] = {
    UnauthorizedError: 401,
    NotFoundError: 404,
    ReceiptAlreadyProcessedError: 409,
    ExtractionError: 422,
    PersistenceError: 500,
}

logger = structlog.get_logger(__name__)


class ProcessReceiptRequest(BaseModel):
    receipt_id: str = Field(..., min_length=1)


def status_code_for(error: ReceiptPipelineError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return code
    return 500


def _receipt_id_of(raw: bytes) -> Optional[str]:
    """Receipt id from a request body, if it parses."""
    try:
        return ProcessReceiptRequest.model_validate_json(raw).receipt_id
    except PydanticValidationError:
        return None


def create_worker_app(
    worker: ExtractionWorker,
    verifier: Optional[TokenVerifier] = None,
) -> FastAPI:
    """Build the FastAPI app exposing ``worker``."""
    verifier = verifier or TokenVerifier()
    app = FastAPI(title="Receipt Extraction Worker", version=__version__)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "healthy"}

    @app.post(PROCESS_RECEIPT_PATH)
    async def process_receipt(
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        raw = await request.body()
        try:
            ctx = verifier.verify_header(authorization)
        except UnauthorizedError as e:
            await worker.audit_logger.log_unauthorized(str(e), _receipt_id_of(raw))
            return JSONResponse(status_code=401, content={"error": str(e)})

        try:
            body = ProcessReceiptRequest.model_validate_json(raw)
        except PydanticValidationError as e:
            return JSONResponse(
                status_code=422,
                content={"error": f"Invalid request body: {e.errors()[0]['msg']}"},
            )

        try:
            data = await worker.extract(ctx, body.receipt_id)
        except ReceiptPipelineError as e:
            code = status_code_for(e)
            logger.warning(
                "process_receipt_failed",
                receipt_id=body.receipt_id,
                status_code=code,
                error=str(e),
            )
            content = {"error": str(e)}
            if isinstance(e, ReceiptAlreadyProcessedError):
                content["current_status"] = e.current_status
            return JSONResponse(status_code=code, content=content)

        return JSONResponse(status_code=200, content={"data": data.to_payload()})

    return app
