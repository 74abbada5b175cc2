"""
Object Store Package

Abstract interface for receipt file storage plus the Cloudinary and
in-memory implementations.
"""

from finance_tracker.services.object_store.interface import (
    ObjectStoreInterface,
    generate_object_path,
)
from finance_tracker.services.object_store.memory import InMemoryObjectStore
from finance_tracker.services.object_store.cloudinary_store import (
    CloudinaryObjectStore,
    verify_content,
)

__all__ = [
    "CloudinaryObjectStore",
    "InMemoryObjectStore",
    "ObjectStoreInterface",
    "generate_object_path",
    "verify_content",
]
