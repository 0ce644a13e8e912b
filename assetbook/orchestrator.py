"""
Main Orchestrator for the Asset Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Load (chunks -> reassemble -> recover if needed -> in-memory ledger)
2. Change (mutation -> new ledger -> persist cycle)

DESIGN DECISION: The orchestrator enforces the boundaries:
- It holds the ONLY authoritative in-memory ledger
- The in-memory ledger changes first; persistence follows and may fail
  without rolling the change back
- One persist cycle at a time; later saves queue behind it
- A corrupt read blocks writes, so nothing overwrites data that might
  still be recoverable by hand
- Every step is audited

It is also the only layer that turns storage errors into messages
for the user.
"""

import asyncio
import re
from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

import structlog
from pydantic import BaseModel

from assetbook.analytics import LedgerAggregator
from assetbook.audit import AuditLogger, create_correlation_id
from assetbook.chunks import (
    ChunkStore,
    CorruptData,
    ReconcileFailed,
    StoreState,
    WriteFailed,
)
from assetbook.config import get_settings
from assetbook.models.ledger import (
    AssetEntry,
    ExpenseEntry,
    FireSettings,
    IncomeMonth,
    IncomeSource,
    Ledger,
)
from assetbook.services.storage import (
    InMemoryDocumentCollection,
    OrderedDocumentCollection,
    StorageError,
)


logger = structlog.get_logger(__name__)

LedgerListener = Callable[[Ledger], None]
ProgressListener = Callable[[int], None]

MONTH_KEY = re.compile(r"^\d{4}-\d{2}$")


class SyncState(str, Enum):
    """What the orchestrator is doing, as shown to the user."""
    IDLE = "idle"
    WRITING = "writing"
    RECONCILING = "reconciling"
    FAILED = "failed"
    BLOCKED = "blocked"


class SyncResult(BaseModel):
    """Outcome of a load or persist cycle."""
    success: bool
    state: SyncState
    message: str = ""
    error: Optional[str] = None
    chunk_count: Optional[int] = None
    discarded_chunks: int = 0
    last_completed_index: Optional[int] = None


def _month_of(day: date) -> str:
    return day.strftime("%Y-%m")


def _check_month(month: str) -> str:
    if not MONTH_KEY.match(month):
        raise ValueError(f"Month must be YYYY-MM, got {month!r}")
    return month


class SyncOrchestrator:
    """
    Owns the in-memory ledger and synchronizes it with the chunk store.

    Flow of a change:
    1. Build a NEW ledger from the current one (never patch in place)
    2. replace() it and notify the listener immediately
    3. persist() it; failures are reported but do not undo step 2
    """

    def __init__(
        self,
        store: ChunkStore,
        owner_id: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
        on_ledger_changed: Optional[LedgerListener] = None,
        on_progress: Optional[ProgressListener] = None,
        initial: Optional[Ledger] = None,
    ):
        self._store = store
        self._owner_id = owner_id
        self._audit_logger = audit_logger
        self._on_ledger_changed = on_ledger_changed
        self._on_progress = on_progress
        self._ledger = initial if initial is not None else Ledger.empty()

        self._lock = asyncio.Lock()
        self._state = SyncState.IDLE
        self._blocked_reason: Optional[str] = None
        self._pending_reconcile: Optional[int] = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def state(self) -> SyncState:
        if self._blocked_reason is not None:
            return SyncState.BLOCKED
        if self._store.state == StoreState.WRITING:
            return SyncState.WRITING
        if self._store.state == StoreState.RECONCILING:
            return SyncState.RECONCILING
        return self._state

    @property
    def progress(self) -> int:
        """Progress of the current (or last) write cycle, 0-100."""
        return self._store.progress

    @property
    def is_blocked(self) -> bool:
        return self._blocked_reason is not None

    @property
    def pending_reconcile(self) -> Optional[int]:
        """Chunk count whose stale tail still awaits deletion, if any."""
        return self._pending_reconcile

    def get(self) -> Ledger:
        return self._ledger

    def replace(self, ledger: Ledger) -> Ledger:
        """Swap the in-memory ledger and notify the listener. Does not persist."""
        self._ledger = ledger
        if self._on_ledger_changed is not None:
            self._on_ledger_changed(ledger)
        return ledger

    # =========================================================================
    # Persistence
    # =========================================================================

    async def persist(self, ledger: Optional[Ledger] = None) -> SyncResult:
        """
        Run one write cycle for `ledger` (default: the current ledger).

        Cycles never overlap; a call made while one runs waits for it.
        """
        async with self._lock:
            if self._blocked_reason is not None:
                if self._audit_logger:
                    await self._audit_logger.log_writes_blocked(
                        self._owner_id, self._blocked_reason
                    )
                return SyncResult(
                    success=False,
                    state=SyncState.BLOCKED,
                    message=(
                        "Saving is disabled because the stored data is damaged. "
                        "Resolve it and unblock saving first."
                    ),
                    error=self._blocked_reason,
                )

            target = ledger if ledger is not None else self._ledger
            correlation_id = create_correlation_id()

            try:
                report = await self._store.write(target, on_progress=self._on_progress)
            except WriteFailed as e:
                self._state = SyncState.FAILED
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        owner_id=self._owner_id,
                        last_completed_index=e.last_completed_index,
                        chunk_count=e.chunk_count,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return SyncResult(
                    success=False,
                    state=SyncState.FAILED,
                    message=(
                        f"Save stopped after {e.last_completed_index + 1} of "
                        f"{e.chunk_count} parts. Your changes are kept here; "
                        "retry to save them."
                    ),
                    error=str(e),
                    chunk_count=e.chunk_count,
                    last_completed_index=e.last_completed_index,
                )
            except ReconcileFailed as e:
                self._state = SyncState.IDLE
                self._pending_reconcile = e.chunk_count
                if self._audit_logger:
                    await self._audit_logger.log_reconcile_failed(
                        owner_id=self._owner_id,
                        chunk_count=e.chunk_count,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return SyncResult(
                    success=True,
                    state=SyncState.IDLE,
                    message="Saved. Old data could not be cleaned up yet; this is retried on next load.",
                    error=str(e),
                    chunk_count=e.chunk_count,
                    last_completed_index=e.chunk_count - 1,
                )

            self._state = SyncState.IDLE
            self._pending_reconcile = None
            if self._audit_logger:
                await self._audit_logger.log_save_completed(
                    owner_id=self._owner_id,
                    chunk_count=report.chunk_count,
                    deleted_indices=report.deleted_indices,
                    correlation_id=correlation_id,
                )
            return SyncResult(
                success=True,
                state=SyncState.IDLE,
                message="Saved",
                chunk_count=report.chunk_count,
                last_completed_index=report.chunk_count - 1,
            )

    async def update(self, ledger: Ledger, reason: str = "update") -> SyncResult:
        """Replace the in-memory ledger, then persist it."""
        self.replace(ledger)
        if self._audit_logger:
            await self._audit_logger.log_ledger_replaced(self._owner_id, reason)
        return await self.persist()

    async def retry(self) -> SyncResult:
        """Re-run the write cycle for the current ledger after a failure."""
        return await self.persist()

    async def load(self) -> SyncResult:
        """
        Load the stored ledger into memory.

        - Nothing stored: the empty ledger
        - Recovered read: loaded, with a warning
        - Corrupt data: in-memory ledger untouched, writes blocked
        - Storage failure: in-memory ledger untouched
        """
        async with self._lock:
            correlation_id = create_correlation_id()

            if self._pending_reconcile is not None:
                await self._retry_reconcile(correlation_id)

            try:
                result = await self._store.read()
            except CorruptData as e:
                self._blocked_reason = str(e)
                if self._audit_logger:
                    await self._audit_logger.log_ledger_corrupt(
                        owner_id=self._owner_id,
                        chunk_count=e.chunk_count,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return SyncResult(
                    success=False,
                    state=SyncState.BLOCKED,
                    message=(
                        "The stored data is damaged and could not be recovered. "
                        "Saving is disabled to protect it."
                    ),
                    error=str(e),
                    chunk_count=e.chunk_count,
                )
            except StorageError as e:
                self._state = SyncState.FAILED
                if self._audit_logger:
                    await self._audit_logger.log_load_failed(
                        self._owner_id, str(e), correlation_id
                    )
                return SyncResult(
                    success=False,
                    state=SyncState.FAILED,
                    message="Could not reach storage. Showing the data already loaded.",
                    error=str(e),
                )

            self._state = SyncState.IDLE

            if result is None:
                self.replace(Ledger.empty())
                if self._audit_logger:
                    await self._audit_logger.log_ledger_not_found(self._owner_id, correlation_id)
                return SyncResult(
                    success=True,
                    state=self.state,
                    message="No saved data yet",
                    chunk_count=0,
                )

            self.replace(result.ledger)

            if result.recovered:
                if self._audit_logger:
                    await self._audit_logger.log_ledger_recovered(
                        owner_id=self._owner_id,
                        chunk_count=result.chunk_count,
                        discarded_chunks=result.discarded_chunks,
                        correlation_id=correlation_id,
                    )
                message = (
                    f"Loaded, but {result.discarded_chunks} damaged trailing part(s) "
                    "were ignored. The next save rewrites them."
                )
            else:
                if self._audit_logger:
                    await self._audit_logger.log_ledger_loaded(
                        self._owner_id, result.chunk_count, correlation_id
                    )
                message = "Loaded"

            return SyncResult(
                success=True,
                state=self.state,
                message=message,
                chunk_count=result.chunk_count,
                discarded_chunks=result.discarded_chunks,
            )

    async def refresh(self) -> SyncResult:
        """Re-read the stored ledger, replacing the in-memory one."""
        return await self.load()

    async def _retry_reconcile(self, correlation_id) -> None:
        chunk_count = self._pending_reconcile
        try:
            deleted = await self._store.reconcile(chunk_count)
        except ReconcileFailed as e:
            logger.warning(
                "pending_reconcile_failed",
                owner_id=self._owner_id,
                chunk_count=chunk_count,
                error=str(e),
            )
            return

        self._pending_reconcile = None
        if self._audit_logger:
            await self._audit_logger.log_reconcile_retried(
                owner_id=self._owner_id,
                chunk_count=chunk_count,
                deleted_indices=deleted,
                correlation_id=correlation_id,
            )

    async def unblock(self) -> None:
        """Re-enable writes after a corrupt read was resolved by hand."""
        if self._blocked_reason is None:
            return
        self._blocked_reason = None
        self._state = SyncState.IDLE
        if self._audit_logger:
            await self._audit_logger.log_writes_unblocked(self._owner_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_asset(self, snapshot_date: date, entry: AssetEntry) -> SyncResult:
        """Append one asset line to the snapshot of `snapshot_date`."""
        ledger = self._ledger
        existing = ledger.records.get(snapshot_date, [])
        records = {**ledger.records, snapshot_date: [*existing, entry]}
        return await self.update(ledger.model_copy(update={"records": records}), "add_asset")

    async def add_income(self, month: str, source: IncomeSource) -> SyncResult:
        """Append one income source to `month` (YYYY-MM), adjusting its total."""
        month = _check_month(month)
        ledger = self._ledger
        existing = ledger.incomes.get(month) or IncomeMonth()
        income = existing.model_copy(update={
            "total_amount": existing.total_amount + source.amount,
            "sources": [*existing.sources, source],
        })
        incomes = {**ledger.incomes, month: income}
        return await self.update(ledger.model_copy(update={"incomes": incomes}), "add_income")

    async def update_details(
        self,
        snapshot_date: date,
        assets: list[AssetEntry],
        memo: str,
        incomes: list[IncomeSource],
    ) -> SyncResult:
        """Replace the snapshot, memo and month income edited on one date."""
        ledger = self._ledger
        month = _month_of(snapshot_date)
        income = self._income_with_sources(ledger, month, incomes)
        new_ledger = ledger.model_copy(update={
            "records": {**ledger.records, snapshot_date: list(assets)},
            "memos": {**ledger.memos, snapshot_date: memo},
            "incomes": {**ledger.incomes, month: income},
        })
        return await self.update(new_ledger, "update_details")

    async def update_records(self, snapshot_date: date, assets: list[AssetEntry]) -> SyncResult:
        ledger = self._ledger
        records = {**ledger.records, snapshot_date: list(assets)}
        return await self.update(ledger.model_copy(update={"records": records}), "update_records")

    async def update_memo(self, memo_date: date, content: str) -> SyncResult:
        ledger = self._ledger
        memos = {**ledger.memos, memo_date: content}
        return await self.update(ledger.model_copy(update={"memos": memos}), "update_memo")

    async def update_income(self, month: str, sources: list[IncomeSource]) -> SyncResult:
        """Replace all income sources of `month`; the total is recomputed."""
        month = _check_month(month)
        ledger = self._ledger
        income = self._income_with_sources(ledger, month, sources)
        incomes = {**ledger.incomes, month: income}
        return await self.update(ledger.model_copy(update={"incomes": incomes}), "update_income")

    async def delete_date(self, day: date) -> SyncResult:
        """Remove the snapshot and memo of one date."""
        ledger = self._ledger
        records = {d: entries for d, entries in ledger.records.items() if d != day}
        memos = {d: memo for d, memo in ledger.memos.items() if d != day}
        new_ledger = ledger.model_copy(update={"records": records, "memos": memos})
        return await self.update(new_ledger, "delete_date")

    async def set_withdrawal_rate(self, rate: Union[str, float]) -> SyncResult:
        """
        Change the FIRE withdrawal rate (percent).

        Unparseable or non-positive values are ignored: the ledger is
        left as it is and nothing is saved.
        """
        try:
            value = float(rate)
        except (TypeError, ValueError):
            value = float("nan")

        if not value > 0:
            return SyncResult(
                success=False,
                state=self.state,
                message=f"Withdrawal rate must be a positive number, got {rate!r}",
            )

        ledger = self._ledger
        settings = ledger.fire_settings.model_copy(update={"withdrawal_rate": value})
        if self._audit_logger:
            await self._audit_logger.log_settings_changed(self._owner_id, value)
        return await self.update(
            ledger.model_copy(update={"fire_settings": settings}),
            "set_withdrawal_rate",
        )

    async def import_ledger(self, ledger: Ledger) -> SyncResult:
        """Replace the whole ledger with an imported one."""
        summary = {
            "records": sum(len(entries) for entries in ledger.records.values()),
            "incomes": sum(len(income.sources) for income in ledger.incomes.values()),
            "expenses": len(ledger.expenses),
            "memos": len(ledger.memos),
        }
        if self._audit_logger:
            await self._audit_logger.log_ledger_imported(self._owner_id, summary)
        return await self.update(ledger, "import_ledger")

    async def import_expenses(self, by_month: dict[str, list[ExpenseEntry]]) -> SyncResult:
        """
        Replace the expenses of every month in `by_month`.

        Months not mentioned keep their existing entries.
        """
        for month in by_month:
            _check_month(month)

        ledger = self._ledger
        expenses = {**ledger.expenses, **{m: list(e) for m, e in by_month.items()}}
        if self._audit_logger:
            await self._audit_logger.log_expenses_imported(
                self._owner_id,
                sorted(by_month),
                sum(len(entries) for entries in by_month.values()),
            )
        return await self.update(
            ledger.model_copy(update={"expenses": expenses}),
            "import_expenses",
        )

    @staticmethod
    def _income_with_sources(ledger: Ledger, month: str, sources: list[IncomeSource]) -> IncomeMonth:
        existing = ledger.incomes.get(month) or IncomeMonth()
        return existing.model_copy(update={
            "total_amount": sum(source.amount for source in sources),
            "sources": list(sources),
        })


def _create_collection(backend: str) -> OrderedDocumentCollection:
    if backend == "firestore":
        from assetbook.services.storage.firestore import FirestoreDocumentCollection
        return FirestoreDocumentCollection()
    if backend == "google_sheets":
        from assetbook.services.storage.google_sheets import GoogleSheetsDocumentCollection
        return GoogleSheetsDocumentCollection()
    return InMemoryDocumentCollection()


def create_app_components(
    owner_id: str,
    backend: Optional[str] = None,
    on_ledger_changed: Optional[LedgerListener] = None,
    on_progress: Optional[ProgressListener] = None,
) -> tuple[SyncOrchestrator, LedgerAggregator]:
    """
    Factory function to create all application components.

    Args:
        owner_id: Authenticated owner; scopes the chunk collection path.
        backend: "firestore", "google_sheets" or "memory".
                 Defaults to the configured backend.

    Returns:
        (orchestrator, aggregator)
    """
    settings = get_settings()
    store_settings = settings.store
    backend = backend or store_settings.backend

    try:
        collection = _create_collection(backend)
    except ValueError as e:
        # Only settings that fail validation land here (Google Sheets without
        # credentials_path or spreadsheet_id). Firestore falls back to
        # Application Default Credentials, so a missing project or key shows
        # up on first use as a failed load or save instead.
        logger.warning(
            "storage_not_configured",
            backend=backend,
            error=str(e),
        )
        collection = InMemoryDocumentCollection()

    store = ChunkStore(
        collection,
        store_settings.collection_path(owner_id),
        chunk_size=store_settings.chunk_size,
    )
    initial = Ledger(
        fire_settings=FireSettings(withdrawal_rate=settings.app.default_withdrawal_rate),
    )
    orchestrator = SyncOrchestrator(
        store,
        owner_id=owner_id,
        audit_logger=AuditLogger(),
        on_ledger_changed=on_ledger_changed,
        on_progress=on_progress,
        initial=initial,
    )
    return orchestrator, LedgerAggregator()
