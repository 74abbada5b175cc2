"""
In-memory object store.

Used by tests and by local development when Cloudinary is not configured.
Addresses use the memory:// scheme so extractors can tell they are not
fetchable over HTTP.
"""

import asyncio
from typing import Optional

from finance_tracker.errors import StorageError
from finance_tracker.models.receipt import ReceiptFile
from finance_tracker.services.object_store.interface import ObjectStoreInterface
from finance_tracker.validation import UploadValidator


class InMemoryObjectStore(ObjectStoreInterface):
    """Dict-backed object store."""

    SCHEME = "memory://"

    def __init__(self, validator: Optional[UploadValidator] = None):
        self._validator = validator or UploadValidator()
        self._objects: dict[str, tuple[str, bytes]] = {}
        self._lock = asyncio.Lock()

    async def store(self, path: str, file: ReceiptFile) -> str:
        self._validator.validate(file)
        async with self._lock:
            if path in self._objects:
                raise StorageError(f"Object already exists: {path}")
            self._objects[path] = (file.media_type, file.content)
        return self.public_address_of(path)

    def public_address_of(self, path: str) -> str:
        return f"{self.SCHEME}{path}"

    def read(self, address: str) -> bytes:
        """Return the bytes stored at ``address``."""
        path = address[len(self.SCHEME):] if address.startswith(self.SCHEME) else address
        try:
            return self._objects[path][1]
        except KeyError:
            raise StorageError(f"No object at {address}")

    @property
    def paths(self) -> list[str]:
        return list(self._objects)
