"""Services package."""

from assetbook.services.storage import (
    BackendError,
    ConnectionError,
    InMemoryDocumentCollection,
    KeyRange,
    OrderedDocumentCollection,
    StorageError,
)

__all__ = [
    "BackendError",
    "ConnectionError",
    "InMemoryDocumentCollection",
    "KeyRange",
    "OrderedDocumentCollection",
    "StorageError",
]
