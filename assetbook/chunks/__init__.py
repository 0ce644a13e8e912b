"""Chunked ledger persistence package."""

from assetbook.chunks.codec import EncodingError, join, split
from assetbook.chunks.store import (
    ChunkStore,
    ChunkStoreError,
    CorruptData,
    ReadResult,
    ReconcileFailed,
    StoreState,
    WriteFailed,
    WriteReport,
)

__all__ = [
    "ChunkStore",
    "ChunkStoreError",
    "CorruptData",
    "EncodingError",
    "ReadResult",
    "ReconcileFailed",
    "StoreState",
    "WriteFailed",
    "WriteReport",
    "join",
    "split",
]
