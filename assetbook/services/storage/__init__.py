"""
Storage Services Package

Provides the ordered document collection interface and its backends.
Firestore is the default; Google Sheets and in-memory are swappable.

The cloud backends are imported lazily by the factory so a memory-backed
setup does not need the Google client libraries configured.
"""

from assetbook.services.storage.interface import (
    BackendError,
    ConnectionError,
    KeyRange,
    OrderedDocumentCollection,
    StorageError,
)
from assetbook.services.storage.memory import InMemoryDocumentCollection

__all__ = [
    # Interface
    "KeyRange",
    "OrderedDocumentCollection",
    # Exceptions
    "BackendError",
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryDocumentCollection",
]
