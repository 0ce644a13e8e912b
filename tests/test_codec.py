"""Tests for splitting and joining serialized ledgers."""

import random

import pytest

from assetbook.chunks import EncodingError, join, split
from assetbook.models.ledger import Chunk, serialize_ledger


class TestSplit:

    def test_chunks_are_full_size_except_last(self):
        chunks = split("a" * 10, 4)

        assert [c.index for c in chunks] == [0, 1, 2]
        assert [len(c.content) for c in chunks] == [4, 4, 2]

    def test_exact_multiple_has_no_empty_tail(self):
        chunks = split("abcdef", 3)
        assert [c.content for c in chunks] == ["abc", "def"]

    def test_short_input_is_one_chunk(self):
        chunks = split('{"records":{}}', 250_000)
        assert len(chunks) == 1
        assert chunks[0].index == 0

    def test_multibyte_characters_are_not_broken(self):
        text = "資產紀錄" * 5
        chunks = split(text, 3)
        assert all(len(c.content) <= 3 for c in chunks)
        assert join(chunks) == text

    def test_rejects_empty_input(self):
        with pytest.raises(EncodingError):
            split("", 10)

    @pytest.mark.parametrize("chunk_size", [0, -5])
    def test_rejects_non_positive_chunk_size(self, chunk_size):
        with pytest.raises(EncodingError):
            split("abc", chunk_size)


class TestJoin:

    def test_join_restores_serialized_ledger(self, sample_ledger):
        serialized = serialize_ledger(sample_ledger)
        assert join(split(serialized, 17)) == serialized

    def test_join_ignores_supply_order(self, sample_ledger):
        serialized = serialize_ledger(sample_ledger)
        chunks = split(serialized, 11)
        shuffled = list(chunks)
        random.Random(7).shuffle(shuffled)

        assert join(shuffled) == serialized

    def test_join_rejects_duplicate_index(self):
        with pytest.raises(EncodingError):
            join([Chunk(index=0, content="a"), Chunk(index=0, content="b")])

    def test_join_of_nothing_is_empty(self):
        assert join([]) == ""
