"""
Chunk Codec

Deterministic, lossless splitting and joining of a serialized ledger.

GUARANTEE: for any non-empty string s and chunk size n > 0,
join(split(s, n)) == s. Fragments are plain slices - no re-encoding,
no separators.
"""

from typing import Iterable

from assetbook.models.ledger import Chunk


class EncodingError(ValueError):
    """Malformed input to split/join. Indicates a caller bug; never retry."""
    pass


def split(serialized: str, chunk_size: int) -> list[Chunk]:
    """
    Split a serialized ledger into ordered fixed-size chunks.

    Every chunk holds exactly `chunk_size` characters except possibly
    the last one.

    Raises:
        EncodingError: `serialized` is empty or `chunk_size` is not positive
    """
    if chunk_size <= 0:
        raise EncodingError(f"Chunk size must be positive, got {chunk_size}")
    if not serialized:
        # An empty ledger still serializes to a minimal JSON object.
        raise EncodingError("Cannot split an empty serialized ledger")

    return [
        Chunk(index=i, content=serialized[start:start + chunk_size])
        for i, start in enumerate(range(0, len(serialized), chunk_size))
    ]


def join(chunks: Iterable[Chunk]) -> str:
    """
    Concatenate chunk contents in ascending index order.

    Chunks may be supplied in any order. The result is not checked
    for JSON validity; that is the caller's job.

    Raises:
        EncodingError: two chunks share an index
    """
    ordered = sorted(chunks, key=lambda c: c.index)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.index == current.index:
            raise EncodingError(f"Duplicate chunk index {current.index}")
    return "".join(chunk.content for chunk in ordered)
