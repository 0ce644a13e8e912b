"""
Shared fixtures.

No test talks to a real backend: storage is the in-memory collection,
with subclasses that fail on demand to exercise the error paths.
"""

from datetime import date
from typing import Optional, Sequence

import pytest

from assetbook.chunks import ChunkStore
from assetbook.models.ledger import (
    AssetEntry,
    AssetType,
    ExpenseEntry,
    IncomeMonth,
    IncomeSource,
    Ledger,
)
from assetbook.services.storage import BackendError, InMemoryDocumentCollection, KeyRange


COLLECTION_PATH = "users/owner-1/chunks"


class FailingPutCollection(InMemoryDocumentCollection):
    """Fails every put of one key while `failing` is set."""

    def __init__(self, fail_at_key: int, **kwargs):
        super().__init__(**kwargs)
        self.fail_at_key = fail_at_key
        self.failing = True
        self.put_calls: list[int] = []

    async def put(self, collection_path: str, key: int, document: dict) -> None:
        self.put_calls.append(key)
        if self.failing and key == self.fail_at_key:
            raise BackendError(f"simulated write failure at {key}")
        await super().put(collection_path, key, document)


class FailingDeleteCollection(InMemoryDocumentCollection):
    """Batch deletes fail while `failing` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.failing = True

    async def delete_many(self, collection_path: str, keys: Sequence[int]) -> None:
        if self.failing:
            raise BackendError("simulated batch delete failure")
        await super().delete_many(collection_path, keys)


class FailingQueryCollection(InMemoryDocumentCollection):
    """Every query fails."""

    async def query_all(
        self,
        collection_path: str,
        ascending: bool = True,
        key_range: Optional[KeyRange] = None,
    ) -> list[dict]:
        raise BackendError("simulated query failure")


@pytest.fixture
def collection():
    return InMemoryDocumentCollection()


@pytest.fixture
def store(collection):
    # Small chunks so ordinary test ledgers span several of them
    return ChunkStore(collection, COLLECTION_PATH, chunk_size=64)


@pytest.fixture
def january_ledger():
    """One snapshot, one income and one expense, all in January 2024."""
    return Ledger(
        records={
            date(2024, 1, 15): [
                AssetEntry(id=1, type=AssetType.FIXED, name="Savings", amount=100000),
            ],
        },
        incomes={
            "2024-01": IncomeMonth.from_sources([IncomeSource(company="Acme", amount=50000)]),
        },
        expenses={
            "2024-01": [ExpenseEntry(date="2024/01/10", account="Card", category="Food", amount=20000)],
        },
    )


@pytest.fixture
def sample_ledger():
    """A ledger spanning two years with every section populated."""
    return Ledger(
        records={
            date(2023, 12, 31): [
                AssetEntry(id=1, type=AssetType.FIXED, name="Savings", amount=300000),
                AssetEntry(id=2, type=AssetType.FLOATING, name="ETF", amount=200000),
            ],
            date(2024, 3, 1): [
                AssetEntry(id=3, type=AssetType.FIXED, name="Savings", amount=320000),
                AssetEntry(id=4, type=AssetType.FLOATING, name="ETF", amount=180000),
            ],
            date(2024, 3, 20): [
                AssetEntry(id=5, type=AssetType.FIXED, name="Savings", amount=330000),
                AssetEntry(id=6, type=AssetType.FLOATING, name="ETF", amount=230000),
                AssetEntry(id=7, type=AssetType.FLOATING, name="Crypto", amount=40000),
            ],
            date(2024, 9, 5): [
                AssetEntry(id=8, type=AssetType.FIXED, name="Savings", amount=350000),
                AssetEntry(id=9, type=AssetType.FLOATING, name="ETF", amount=300000),
            ],
        },
        memos={
            date(2024, 3, 20): "bonus month",
            date(2024, 6, 2): "moved flat",
        },
        incomes={
            "2023-12": IncomeMonth.from_sources([IncomeSource(company="Acme", amount=60000)]),
            "2024-01": IncomeMonth.from_sources([IncomeSource(company="Acme", amount=60000)]),
            "2024-03": IncomeMonth.from_sources([
                IncomeSource(company="Acme", amount=60000),
                IncomeSource(company="Acme", amount=90000, memo="bonus"),
            ]),
        },
        expenses={
            "2024-01": [
                ExpenseEntry(date="2024/01/05", account="Card", category="Food", amount=12000),
                ExpenseEntry(date="2024/01/20", account="Cash", category="Transport", amount=3000),
            ],
            "2024-02": [],
            "2024-03": [
                ExpenseEntry(date="2024/03/02", account="Card", category="Food", amount=15000),
                ExpenseEntry(date="2024/03/15", account="Card", category="", amount=5000),
            ],
        },
    )
