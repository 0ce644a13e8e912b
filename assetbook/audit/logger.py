"""
Audit Logger

DESIGN DECISION: Every load, save and replacement of the ledger is logged.
This provides:
1. Traceability of each persist cycle through a correlation id
2. A visible trail for recovered reads, which are never silent
3. Debugging information when a save stops half-way

The audit logger:
- Emits structured JSON log lines at the event's own severity
- Keeps a short in-memory history for display
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from assetbook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service for ledger lifecycle events.

    Events that were logged are also kept in `events` (most recent last,
    bounded by `history_size`) so a caller can show what happened.
    """

    def __init__(self, history_size: int = 100):
        self._logger = structlog.get_logger("assetbook.audit")
        self._history_size = history_size
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event at its severity."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self.events.append(event)
        if len(self.events) > self._history_size:
            del self.events[:-self._history_size]

    # =========================================================================
    # Loading
    # =========================================================================

    async def log_ledger_loaded(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_loaded(owner_id, chunk_count, correlation_id))

    async def log_ledger_not_found(
        self,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_not_found(owner_id, correlation_id))

    async def log_ledger_recovered(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        discarded_chunks: int,
        correlation_id: UUID,
    ) -> None:
        """Log a read that only succeeded after trimming tail chunks."""
        event = AuditEventBuilder.ledger_recovered(
            owner_id=owner_id,
            chunk_count=chunk_count,
            discarded_chunks=discarded_chunks,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_corrupt(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.ledger_corrupt(
            owner_id=owner_id,
            chunk_count=chunk_count,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_load_failed(
        self,
        owner_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.load_failed(owner_id, error_message, correlation_id))

    # =========================================================================
    # In-memory changes
    # =========================================================================

    async def log_ledger_replaced(self, owner_id: Optional[str], reason: str) -> None:
        await self.log(AuditEventBuilder.ledger_replaced(owner_id, reason))

    async def log_ledger_imported(
        self,
        owner_id: Optional[str],
        summary: dict[str, int],
    ) -> None:
        await self.log(AuditEventBuilder.ledger_imported(owner_id, summary))

    async def log_expenses_imported(
        self,
        owner_id: Optional[str],
        months: list[str],
        record_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.expenses_imported(owner_id, months, record_count))

    async def log_settings_changed(
        self,
        owner_id: Optional[str],
        withdrawal_rate: float,
    ) -> None:
        await self.log(AuditEventBuilder.settings_changed(owner_id, withdrawal_rate))

    # =========================================================================
    # Persistence
    # =========================================================================

    async def log_save_completed(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        deleted_indices: list[int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.save_completed(
            owner_id=owner_id,
            chunk_count=chunk_count,
            deleted_indices=deleted_indices,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        owner_id: Optional[str],
        last_completed_index: int,
        chunk_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a write cycle that stopped part-way."""
        event = AuditEventBuilder.save_failed(
            owner_id=owner_id,
            last_completed_index=last_completed_index,
            chunk_count=chunk_count,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_reconcile_failed(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.reconcile_failed(
            owner_id=owner_id,
            chunk_count=chunk_count,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_reconcile_retried(
        self,
        owner_id: Optional[str],
        chunk_count: int,
        deleted_indices: list[int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.reconcile_retried(
            owner_id=owner_id,
            chunk_count=chunk_count,
            deleted_indices=deleted_indices,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_writes_blocked(self, owner_id: Optional[str], reason: str) -> None:
        await self.log(AuditEventBuilder.writes_blocked(owner_id, reason))

    async def log_writes_unblocked(self, owner_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.writes_unblocked(owner_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use one per load or persist cycle and pass it to every event
    that cycle produces.
    """
    return uuid4()
