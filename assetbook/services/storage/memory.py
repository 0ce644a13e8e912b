"""
In-Memory Storage Implementation

Keeps collections in a process-local dict. Used when the store backend
is configured as `memory` (offline / local development) and as the
backend of the test suite.

Documents are copied on the way in and out, so callers can never
mutate stored state by accident.
"""

from typing import Optional, Sequence

from assetbook.services.storage.interface import (
    KeyRange,
    OrderedDocumentCollection,
)


class InMemoryDocumentCollection(OrderedDocumentCollection):
    """Dict-backed ordered document collection."""

    def __init__(self, max_document_chars: Optional[int] = None):
        self._collections: dict[str, dict[int, dict]] = {}
        self.max_document_chars = max_document_chars

    async def put(self, collection_path: str, key: int, document: dict) -> None:
        self._collections.setdefault(collection_path, {})[key] = dict(document)

    async def query_all(
        self,
        collection_path: str,
        ascending: bool = True,
        key_range: Optional[KeyRange] = None,
    ) -> list[dict]:
        stored = self._collections.get(collection_path, {})
        keys = sorted(stored, reverse=not ascending)
        if key_range is not None:
            keys = [k for k in keys if k in key_range]
        return [dict(stored[k]) for k in keys]

    async def delete_many(self, collection_path: str, keys: Sequence[int]) -> None:
        stored = self._collections.get(collection_path, {})
        for key in keys:
            stored.pop(key, None)

    def keys(self, collection_path: str) -> list[int]:
        """Stored keys of a collection, ascending."""
        return sorted(self._collections.get(collection_path, {}))
