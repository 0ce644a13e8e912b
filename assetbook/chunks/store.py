"""
Chunk Store

Durable storage of one ledger as ordered chunks in a document collection.

WRITE PROTOCOL (one persist cycle):
1. Serialize the ledger to canonical JSON
2. Split into N chunks
3. Upsert chunks SEQUENTIALLY in ascending index order, one awaited
   call per chunk, reporting progress after each
4. Reconcile: delete every stored chunk with index >= N in one batch

Sequential writing is a contract, not an accident: progress stays
monotonic and a failure leaves a clean prefix of valid chunks instead
of an interleaved partial set. Never parallelize step 3.

READ PROTOCOL:
1. Query all chunks ordered by index
2. No chunks -> None (nothing stored yet, not an error)
3. Join and parse
4. On a JSON syntax error, trim whole chunks from the tail one at a time
   (never index 0) and re-parse; the first success wins. Stale tail
   chunks left behind by a shrinking save are the only corruption this
   heuristic addresses.
"""

import json
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from assetbook.chunks.codec import EncodingError, join, split
from assetbook.config import DEFAULT_CHUNK_SIZE
from assetbook.models.ledger import Chunk, Ledger, serialize_ledger
from assetbook.services.storage.interface import (
    KeyRange,
    OrderedDocumentCollection,
    StorageError,
)


logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int], None]


class StoreState(str, Enum):
    """Per-cycle state of the chunk store."""
    IDLE = "idle"
    WRITING = "writing"
    RECONCILING = "reconciling"
    FAILED = "failed"


# =============================================================================
# ERRORS
# =============================================================================

class ChunkStoreError(StorageError):
    """Base exception for chunk store operations."""
    pass


class WriteFailed(ChunkStoreError):
    """
    A chunk write failed mid-cycle.

    Chunks 0..last_completed_index are stored. Re-running write() with
    the same ledger is safe: upserts are idempotent per index.
    """

    def __init__(self, last_completed_index: int, chunk_count: int, message: str = ""):
        self.last_completed_index = last_completed_index
        self.chunk_count = chunk_count
        super().__init__(
            f"Write failed after chunk {last_completed_index} of {chunk_count}: {message}"
        )


class ReconcileFailed(ChunkStoreError):
    """
    Stale chunks could not be deleted after a successful write.

    The ledger IS saved; stale tail chunks may remain until the
    next successful reconciliation.
    """

    def __init__(self, chunk_count: int, message: str = ""):
        self.chunk_count = chunk_count
        super().__init__(f"Reconciliation beyond chunk count {chunk_count} failed: {message}")


class CorruptData(ChunkStoreError):
    """Stored chunks do not reassemble into a ledger, even after tail trimming."""

    def __init__(self, chunk_count: int, message: str = ""):
        self.chunk_count = chunk_count
        super().__init__(f"Stored ledger ({chunk_count} chunks) is corrupt: {message}")


# =============================================================================
# RESULTS
# =============================================================================

class WriteReport(BaseModel):
    """Outcome of a successful write cycle."""
    chunk_count: int
    serialized_length: int
    deleted_indices: list[int] = Field(default_factory=list)


class ReadResult(BaseModel):
    """A ledger read back from storage."""
    ledger: Ledger
    chunk_count: int
    discarded_chunks: int = 0

    @property
    def recovered(self) -> bool:
        return self.discarded_chunks > 0


def progress_percent(completed: int, total: int) -> int:
    """completed/total as a whole percentage, rounded half-up."""
    return (completed * 200 + total) // (2 * total)


class ChunkStore:
    """
    Stores and retrieves one owner's ledger as chunks.

    Only one write cycle may run at a time; callers serialize writes.
    Reads are idempotent and safe to repeat.
    """

    def __init__(
        self,
        collection: OrderedDocumentCollection,
        collection_path: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        limit = collection.max_document_chars
        if limit is not None and chunk_size > limit:
            logger.info(
                "chunk_size_clamped",
                requested=chunk_size,
                backend_limit=limit,
            )
            chunk_size = limit

        self._collection = collection
        self._path = collection_path
        self._chunk_size = chunk_size
        self.state = StoreState.IDLE
        self.progress = 0

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def collection_path(self) -> str:
        return self._path

    async def write(
        self,
        ledger: Ledger,
        on_progress: Optional[ProgressCallback] = None,
    ) -> WriteReport:
        """
        Persist a ledger (full write cycle, see module docstring).

        Raises:
            WriteFailed: a chunk write failed; carries the last stored index
            ReconcileFailed: all chunks written, stale chunk deletion failed
        """
        serialized = serialize_ledger(ledger)
        chunks = split(serialized, self._chunk_size)
        total = len(chunks)

        self.state = StoreState.WRITING
        self.progress = 0
        last_completed = -1

        for chunk in chunks:
            try:
                await self._collection.put(
                    self._path,
                    chunk.index,
                    {"index": chunk.index, "content": chunk.content},
                )
            except StorageError as e:
                self.state = StoreState.FAILED
                logger.error(
                    "chunk_write_failed",
                    collection=self._path,
                    index=chunk.index,
                    chunk_count=total,
                    error=str(e),
                )
                raise WriteFailed(last_completed, total, str(e)) from e

            last_completed = chunk.index
            self.progress = progress_percent(chunk.index + 1, total)
            if on_progress is not None:
                on_progress(self.progress)

        deleted = await self.reconcile(total)

        logger.debug(
            "ledger_written",
            collection=self._path,
            chunk_count=total,
            serialized_length=len(serialized),
            deleted=deleted,
        )
        return WriteReport(
            chunk_count=total,
            serialized_length=len(serialized),
            deleted_indices=deleted,
        )

    async def reconcile(self, chunk_count: int) -> list[int]:
        """
        Delete every stored chunk with index >= chunk_count, as one batch.

        Returns the deleted indices.

        Raises:
            ReconcileFailed: the query or the batch delete failed
        """
        self.state = StoreState.RECONCILING
        try:
            stale = await self._collection.query_all(
                self._path,
                ascending=True,
                key_range=KeyRange(start=chunk_count),
            )
            keys = [int(doc["index"]) for doc in stale]
            if keys:
                await self._collection.delete_many(self._path, keys)
        except StorageError as e:
            self.state = StoreState.IDLE
            logger.warning(
                "chunk_reconcile_failed",
                collection=self._path,
                chunk_count=chunk_count,
                error=str(e),
            )
            raise ReconcileFailed(chunk_count, str(e)) from e

        self.state = StoreState.IDLE
        return keys

    async def read(self) -> Optional[ReadResult]:
        """
        Read and reassemble the stored ledger.

        Returns None when nothing is stored.

        Raises:
            CorruptData: the chunks do not form a ledger, even after recovery
            StorageError: the backend query failed
        """
        documents = await self._collection.query_all(self._path, ascending=True)
        if not documents:
            return None

        try:
            chunks = sorted(
                (
                    Chunk(index=int(doc["index"]), content=doc.get("content") or "")
                    for doc in documents
                ),
                key=lambda c: c.index,
            )
            full = join(chunks)
        except (KeyError, TypeError, ValueError, EncodingError) as e:
            raise CorruptData(len(documents), f"malformed chunk document: {e}") from e

        total = len(chunks)
        try:
            return ReadResult(
                ledger=self._validate(json.loads(full), total),
                chunk_count=total,
            )
        except json.JSONDecodeError as e:
            original_error = e

        logger.warning(
            "ledger_parse_failed",
            collection=self._path,
            chunk_count=total,
            error=str(original_error),
        )

        current = full
        for i in range(total - 1, 0, -1):
            current = current[:len(current) - len(chunks[i].content)]
            try:
                data = json.loads(current)
            except json.JSONDecodeError:
                continue

            discarded = total - i
            logger.warning(
                "ledger_recovered",
                collection=self._path,
                chunk_count=total,
                discarded_chunks=discarded,
            )
            return ReadResult(
                ledger=self._validate(data, total),
                chunk_count=total,
                discarded_chunks=discarded,
            )

        raise CorruptData(total, str(original_error)) from original_error

    @staticmethod
    def _validate(data: object, chunk_count: int) -> Ledger:
        try:
            return Ledger.model_validate(data)
        except ValidationError as e:
            raise CorruptData(chunk_count, f"not a ledger: {e}") from e
