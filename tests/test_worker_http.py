"""Tests for the worker's HTTP boundary and the HTTP worker client."""

import asyncio
import random
import pytest
from datetime import date, timedelta

import httpx
from fastapi.testclient import TestClient

from finance_tracker.auth import AuthContext, TokenVerifier, create_access_token
from finance_tracker.errors import (
    ExtractionError,
    NotFoundError,
    ReceiptAlreadyProcessedError,
    UnauthorizedError,
)
from finance_tracker.models import ReceiptStatus
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.extraction import ExtractorInterface, PlaceholderExtractor
from finance_tracker.worker import (
    PROCESS_RECEIPT_PATH,
    ExtractionWorker,
    HttpWorkerClient,
    create_worker_app,
)


class FailingExtractor(ExtractorInterface):

    async def extract(self, file_reference):
        raise RuntimeError("unreadable")


def build_app(receipt_storage, audit_logger, extractor=None):
    extractor = extractor or PlaceholderExtractor(rng=random.Random(5), clock=lambda: date(2024, 7, 1))
    worker = ExtractionWorker(receipt_storage, extractor, audit_logger)
    return create_worker_app(worker, TokenVerifier())


@pytest.fixture
def seeded(ctx, receipt_storage, pending_record):
    asyncio.run(receipt_storage.create_receipt(ctx, pending_record))
    return pending_record


def bearer(ctx: AuthContext) -> dict:
    return ctx.authorization_header()


class TestWorkerEndpoint:

    def test_health(self, receipt_storage, audit_logger):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_success(self, ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id}, headers=bearer(ctx))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["merchant"] == "Sample Store"
        assert data["date"] == "2024-07-01"
        record = asyncio.run(receipt_storage.get_receipt(ctx, seeded.id))
        assert record.status == ReceiptStatus.COMPLETED

    def test_missing_token_is_401_without_side_effects(self, ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id})

        assert response.status_code == 401
        assert "error" in response.json()
        record = asyncio.run(receipt_storage.get_receipt(ctx, seeded.id))
        assert record.status == ReceiptStatus.PENDING
        assert record.updated_at == seeded.updated_at

    def test_missing_token_with_malformed_body_is_401(self, receipt_storage, audit_logger, audit_storage):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt": 42})

        assert response.status_code == 401
        assert set(response.json()) == {"error"}
        assert audit_storage.events[-1].event_type == AuditEventType.UNAUTHORIZED_INVOCATION

    def test_malformed_body_is_422_with_error(self, ctx, receipt_storage, audit_logger):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, content=b"not json", headers=bearer(ctx))

        assert response.status_code == 422
        assert "error" in response.json()

    def test_expired_token_is_401(self, ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger))
        token = create_access_token(ctx.user_id, expires_delta=timedelta(seconds=-1))
        response = client.post(
            PROCESS_RECEIPT_PATH,
            json={"receipt_id": seeded.id},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_unknown_receipt_is_404(self, ctx, receipt_storage, audit_logger):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": "nope"}, headers=bearer(ctx))
        assert response.status_code == 404

    def test_someone_elses_receipt_is_404(self, other_ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id}, headers=bearer(other_ctx))
        assert response.status_code == 404

    def test_second_invocation_is_409(self, ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger))
        first = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id}, headers=bearer(ctx))
        second = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id}, headers=bearer(ctx))

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["current_status"] == "completed"

    def test_extractor_failure_is_422(self, ctx, receipt_storage, audit_logger, seeded):
        client = TestClient(build_app(receipt_storage, audit_logger, FailingExtractor()))
        response = client.post(PROCESS_RECEIPT_PATH, json={"receipt_id": seeded.id}, headers=bearer(ctx))

        assert response.status_code == 422
        assert "unreadable" in response.json()["error"]
        record = asyncio.run(receipt_storage.get_receipt(ctx, seeded.id))
        assert record.status == ReceiptStatus.FAILED


class TestHttpWorkerClient:

    def call(self, app, ctx, receipt_id):
        async def run():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport) as client:
                worker_client = HttpWorkerClient("http://worker", timeout=5, client=client)
                return await worker_client.process_receipt(ctx, receipt_id)

        return asyncio.run(run())

    def test_returns_extracted_data(self, ctx, receipt_storage, audit_logger, seeded):
        data = self.call(build_app(receipt_storage, audit_logger), ctx, seeded.id)
        assert data.merchant == "Sample Store"

    def test_maps_status_codes_to_errors(self, ctx, receipt_storage, audit_logger, seeded):
        app = build_app(receipt_storage, audit_logger)

        with pytest.raises(UnauthorizedError):
            self.call(app, AuthContext(user_id=ctx.user_id), seeded.id)
        with pytest.raises(NotFoundError):
            self.call(app, ctx, "missing")

        self.call(app, ctx, seeded.id)
        with pytest.raises(ReceiptAlreadyProcessedError) as exc:
            self.call(app, ctx, seeded.id)
        assert exc.value.current_status == "completed"

    def test_extraction_failure(self, ctx, receipt_storage, audit_logger, seeded):
        app = build_app(receipt_storage, audit_logger, FailingExtractor())
        with pytest.raises(ExtractionError) as exc:
            self.call(app, ctx, seeded.id)
        assert exc.value.status_code == 422

    def test_transport_failure_is_extraction_error(self, ctx):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
                worker_client = HttpWorkerClient("http://worker", client=client)
                await worker_client.process_receipt(ctx, "r-1")

        with pytest.raises(ExtractionError, match="connection refused"):
            asyncio.run(run())
