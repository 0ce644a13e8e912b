"""
Abstract Storage Interface

DESIGN DECISION: The chunk store only needs an ordered collection of
small documents keyed by a non-negative integer. We define exactly that
contract and nothing more. This allows us to:
1. Run on Firestore (the hosted default) or Google Sheets
2. Use in-memory storage for testing and offline use
3. Keep the chunking protocol decoupled from any backend

The interface is intentionally tiny - three operations:
- put:         idempotent upsert of one document
- query_all:   documents ordered by key, optionally within a key range
- delete_many: batch delete, all-or-nothing
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class KeyRange:
    """Half-open key range [start, stop). `stop=None` means unbounded."""

    start: int = 0
    stop: Optional[int] = None

    def __contains__(self, key: int) -> bool:
        if key < self.start:
            return False
        return self.stop is None or key < self.stop


class OrderedDocumentCollection(ABC):
    """
    Abstract interface for an ordered document collection.

    Documents are plain dicts that carry their own integer key under
    `key_field`. Any backend (Firestore, Google Sheets, in-memory)
    must implement these methods.
    """

    key_field: str = "index"

    # Largest string a single document field can hold, if the backend caps it.
    max_document_chars: Optional[int] = None

    @abstractmethod
    async def put(self, collection_path: str, key: int, document: dict) -> None:
        """
        Upsert one document under `key`.

        Writing the same document twice leaves the same stored state.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def query_all(
        self,
        collection_path: str,
        ascending: bool = True,
        key_range: Optional[KeyRange] = None,
    ) -> list[dict]:
        """
        Return every document of the collection ordered by key.

        Args:
            collection_path: Collection to read
            ascending: Sort direction of the key
            key_range: Only documents whose key lies in this range

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def delete_many(self, collection_path: str, keys: Sequence[int]) -> None:
        """
        Delete all documents with the given keys as one batch.

        Either every document is deleted or none is.

        Raises:
            StorageError: If the batch fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class BackendError(StorageError):
    """The backend rejected or failed an operation."""
    pass
