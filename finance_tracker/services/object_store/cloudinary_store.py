"""
Receipt Object Store using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. It stores images AND PDFs under one resource type
2. It hands back a durable, publicly retrievable URL per object
3. OCR providers can fetch straight from that URL
4. Free tier sufficient for personal use

This service handles:
1. Re-checking the upload allow-list (defense in depth)
2. Verifying the bytes really are what the client declared
3. Uploading under a collision-resistant public ID
4. Returning the secure delivery URL

CRITICAL: We never overwrite. A public ID collision is a storage error,
not a silent replacement of someone else's receipt.
"""

import asyncio
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
from PIL import Image, UnidentifiedImageError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import CloudinarySettings, get_settings
from finance_tracker.errors import StorageError, ValidationError
from finance_tracker.models.receipt import ReceiptFile
from finance_tracker.services.object_store.interface import ObjectStoreInterface
from finance_tracker.validation import UploadValidator


# Pillow format name expected for each accepted image media type
_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

PDF_MAGIC = b"%PDF-"


def verify_content(file: ReceiptFile) -> None:
    """
    Check that the bytes match the declared media type.

    Raises:
        ValidationError: constraint "content_type"
    """
    if file.media_type == "application/pdf":
        if not file.content.startswith(PDF_MAGIC):
            raise ValidationError(
                "content_type",
                "File was declared as PDF but is not a PDF document.",
            )
        return

    expected = _PIL_FORMATS.get(file.media_type)
    if expected is None:
        return

    try:
        img = Image.open(BytesIO(file.content))
        detected = img.format
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError(
            "content_type",
            f"File could not be read as an image: {e}",
        )

    if detected != expected:
        raise ValidationError(
            "content_type",
            f"File was declared as {file.media_type} but contains {detected or 'unknown'} data.",
        )


class CloudinaryObjectStore(ObjectStoreInterface):
    """
    Object store backed by Cloudinary.

    Flow:
    1. Receive ReceiptFile + generated path
    2. Validate declared type/size and sniff the content
    3. Upload under {folder}/{path without extension}
    4. Return the secure URL
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        validator: Optional[UploadValidator] = None,
    ):
        self._settings = settings or get_settings().cloudinary
        self._validator = validator or UploadValidator()
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, path: str) -> tuple[str, Optional[str]]:
        """
        Split a path into (public_id, format).

        Cloudinary keeps the format separately from the public ID.
        """
        stem, dot, ext = path.rpartition(".")
        if not dot or "/" in ext:
            return f"{self._settings.folder}/{path}", None
        return f"{self._settings.folder}/{stem}", ext.lower()

    @retry(
        retry=retry_if_exception_type(cloudinary.exceptions.Error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _upload(self, content: bytes, public_id: str) -> dict:
        return await asyncio.to_thread(
            cloudinary.uploader.upload,
            BytesIO(content),
            public_id=public_id,
            resource_type="image",
            overwrite=False,
            unique_filename=False,
        )

    async def store(self, path: str, file: ReceiptFile) -> str:
        """
        Upload a receipt file.

        Raises:
            ValidationError: If the file fails the allow-list or content sniffing
            StorageError: If the upload fails
        """
        self._validator.validate(file)
        verify_content(file)
        self._configure()

        public_id, _ = self._public_id(path)
        try:
            result = await self._upload(file.content, public_id)
        except cloudinary.exceptions.Error as e:
            raise StorageError(f"Cloudinary error: {e}") from e
        except Exception as e:
            raise StorageError(f"Failed to upload receipt file: {e}") from e

        if result.get("existing"):
            raise StorageError(f"Object already exists: {public_id}")

        address = result.get("secure_url") or result.get("url")
        if not address:
            raise StorageError("No URL returned from Cloudinary")
        return address

    def public_address_of(self, path: str) -> str:
        self._configure()
        public_id, fmt = self._public_id(path)
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            format=fmt,
            resource_type="image",
            secure=True,
        )
        return url
