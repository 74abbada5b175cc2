"""Extraction worker package."""

from finance_tracker.worker.extraction_worker import ExtractionWorker
from finance_tracker.worker.http import PROCESS_RECEIPT_PATH, create_worker_app
from finance_tracker.worker.client import (
    HttpWorkerClient,
    LocalWorkerClient,
    WorkerClientInterface,
)

__all__ = [
    "ExtractionWorker",
    "HttpWorkerClient",
    "LocalWorkerClient",
    "PROCESS_RECEIPT_PATH",
    "WorkerClientInterface",
    "create_worker_app",
]
