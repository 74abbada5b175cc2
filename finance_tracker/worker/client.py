"""
Worker clients.

The orchestrator invokes the extraction worker through one of these:
- LocalWorkerClient calls an in-process ExtractionWorker
- HttpWorkerClient POSTs to a deployed worker and maps the response
  back to the typed errors
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

import httpx

from finance_tracker.auth import AuthContext
from finance_tracker.errors import (
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ReceiptAlreadyProcessedError,
    UnauthorizedError,
)
from finance_tracker.models.receipt import ExtractedReceiptData
from finance_tracker.worker.extraction_worker import ExtractionWorker
from finance_tracker.worker.http import PROCESS_RECEIPT_PATH


class WorkerClientInterface(ABC):
    """Invokes extraction for one receipt."""

    @abstractmethod
    async def process_receipt(
        self,
        ctx: AuthContext,
        receipt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractedReceiptData:
        pass


class LocalWorkerClient(WorkerClientInterface):
    """Runs the worker in the caller's process."""

    def __init__(self, worker: ExtractionWorker):
        self._worker = worker

    async def process_receipt(
        self,
        ctx: AuthContext,
        receipt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractedReceiptData:
        return await self._worker.extract(ctx, receipt_id, correlation_id)


class HttpWorkerClient(WorkerClientInterface):
    """
    Calls a worker deployed behind its HTTP boundary.

    The caller's access token is forwarded as the bearer token; the worker
    derives the identity from it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def _post(self, ctx: AuthContext, receipt_id: str) -> httpx.Response:
        url = f"{self._base_url}{PROCESS_RECEIPT_PATH}"
        kwargs = {
            "json": {"receipt_id": receipt_id},
            "headers": ctx.authorization_header(),
            "timeout": self._timeout,
        }
        if self._client is not None:
            return await self._client.post(url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, **kwargs)

    async def process_receipt(
        self,
        ctx: AuthContext,
        receipt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractedReceiptData:
        try:
            response = await self._post(ctx, receipt_id)
        except httpx.TimeoutException as e:
            raise ExtractionError(f"Worker timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"Worker request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 200:
            if "data" not in body:
                raise ExtractionError("Worker response has no data", status_code=200)
            try:
                return ExtractedReceiptData.model_validate(body["data"])
            except ValueError as e:
                raise ExtractionError(f"Worker returned malformed data: {e}", status_code=200) from e

        message = body.get("error") or f"Worker returned HTTP {response.status_code}"
        if response.status_code == 401:
            raise UnauthorizedError(message)
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code == 409:
            raise ReceiptAlreadyProcessedError(receipt_id, body.get("current_status", "processed"))
        if response.status_code == 500:
            raise PersistenceError(message)
        raise ExtractionError(message, status_code=response.status_code)
