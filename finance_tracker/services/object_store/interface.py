"""
Abstract Object Store Interface

DESIGN DECISION: Receipt files live behind a two-operation interface.
This allows us to:
1. Swap Cloudinary for S3/GCS/Supabase storage later
2. Use in-memory storage for testing
3. Keep the orchestrator ignorant of where bytes end up

Paths are generated here, never taken from the client: a random token
plus the original extension, so two uploads of "receipt.jpg" never
collide.
"""

from abc import ABC, abstractmethod
from uuid import uuid4

from finance_tracker.models.receipt import ReceiptFile


RECEIPTS_PREFIX = "receipts"


def generate_object_path(file: ReceiptFile) -> str:
    """
    Generate a collision-resistant path for ``file``.

    Format: receipts/{random_hex}.{ext}
    """
    token = uuid4().hex
    if file.extension:
        return f"{RECEIPTS_PREFIX}/{token}.{file.extension}"
    return f"{RECEIPTS_PREFIX}/{token}"


class ObjectStoreInterface(ABC):
    """
    Abstract interface for durable receipt file storage.

    Implementations MUST re-check the upload allow-list and size ceiling
    before writing.
    """

    @abstractmethod
    async def store(self, path: str, file: ReceiptFile) -> str:
        """
        Store the bytes of ``file`` under ``path``.

        Returns:
            Retrievable address of the stored object

        Raises:
            ValidationError: If the file violates the allow-list or size ceiling
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def public_address_of(self, path: str) -> str:
        """Return the retrievable address for an already stored ``path``."""
        pass
