"""
Audit Models for the Asset Ledger

Every load, save and replacement of the ledger is recorded as an event.
This provides:
1. Traceability of every persist cycle (correlated by id)
2. A visible trail of recovered or corrupt reads
3. Debugging information when a save fails half-way

DESIGN DECISION: A recovered read is an audit WARNING, never a silent
success. The tail-trim heuristic can in theory mask other corruption,
so every recovery must leave a trace.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Loading
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_NOT_FOUND = "ledger_not_found"
    LEDGER_RECOVERED = "ledger_recovered"
    LEDGER_CORRUPT = "ledger_corrupt"
    LOAD_FAILED = "load_failed"

    # In-memory changes
    LEDGER_REPLACED = "ledger_replaced"
    LEDGER_IMPORTED = "ledger_imported"
    EXPENSES_IMPORTED = "expenses_imported"
    SETTINGS_CHANGED = "settings_changed"

    # Persistence
    SAVE_COMPLETED = "save_completed"
    SAVE_FAILED = "save_failed"
    RECONCILE_FAILED = "reconcile_failed"
    RECONCILE_RETRIED = "reconcile_retried"

    # Write guard
    WRITES_BLOCKED = "writes_blocked"
    WRITES_UNBLOCKED = "writes_unblocked"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    The owner id is the entity; the correlation id ties together
    all events of one load or persist cycle.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner of the ledger this event relates to"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one load/persist cycle"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.ledger_loaded(owner_id, chunk_count, correlation_id)
        event = AuditEventBuilder.save_failed(owner_id, 3, 5, "timeout", correlation_id)
    """

    @staticmethod
    def ledger_loaded(
        owner_id: Optional[str],
        chunk_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Ledger loaded from {chunk_count} chunk(s)",
            details={"chunk_count": chunk_count},
        )

    @staticmethod
    def ledger_not_found(
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_NOT_FOUND,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="No stored ledger found, starting from an empty ledger",
        )

    @staticmethod
    def ledger_recovered(
        owner_id: Optional[str],
        chunk_count: int,
        discarded_chunks: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RECOVERED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Ledger recovered by trimming {discarded_chunks} tail chunk(s)",
            details={
                "chunk_count": chunk_count,
                "discarded_chunks": discarded_chunks,
            },
        )

    @staticmethod
    def ledger_corrupt(
        owner_id: Optional[str],
        chunk_count: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CORRUPT,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Stored ledger could not be reassembled; writes are blocked",
            error_code="corrupt_data",
            error_message=error_message,
            details={"chunk_count": chunk_count},
        )

    @staticmethod
    def load_failed(
        owner_id: Optional[str],
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Ledger could not be read from storage",
            error_message=error_message,
        )

    @staticmethod
    def ledger_replaced(
        owner_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            description=f"In-memory ledger replaced: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def ledger_imported(
        owner_id: Optional[str],
        summary: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_IMPORTED,
            owner_id=owner_id,
            description="Whole ledger replaced by import",
            details=summary,
        )

    @staticmethod
    def expenses_imported(
        owner_id: Optional[str],
        months: list[str],
        record_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_IMPORTED,
            owner_id=owner_id,
            description=f"Expenses replaced for {len(months)} month(s)",
            details={
                "months": months,
                "record_count": record_count,
            },
        )

    @staticmethod
    def settings_changed(
        owner_id: Optional[str],
        withdrawal_rate: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_CHANGED,
            owner_id=owner_id,
            description=f"Withdrawal rate set to {withdrawal_rate}%",
            details={"withdrawal_rate": withdrawal_rate},
        )

    @staticmethod
    def save_completed(
        owner_id: Optional[str],
        chunk_count: int,
        deleted_indices: list[int],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_COMPLETED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Ledger saved as {chunk_count} chunk(s)",
            details={
                "chunk_count": chunk_count,
                "deleted_indices": deleted_indices,
            },
        )

    @staticmethod
    def save_failed(
        owner_id: Optional[str],
        last_completed_index: int,
        chunk_count: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Save failed after {last_completed_index + 1} of {chunk_count} chunk(s)",
            error_code="write_failed",
            error_message=error_message,
            details={
                "last_completed_index": last_completed_index,
                "chunk_count": chunk_count,
            },
        )

    @staticmethod
    def reconcile_failed(
        owner_id: Optional[str],
        chunk_count: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILE_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Ledger saved but stale chunks could not be removed",
            error_code="reconcile_failed",
            error_message=error_message,
            details={"chunk_count": chunk_count},
        )

    @staticmethod
    def reconcile_retried(
        owner_id: Optional[str],
        chunk_count: int,
        deleted_indices: list[int],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILE_RETRIED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Pending reconciliation completed, removed {len(deleted_indices)} chunk(s)",
            details={
                "chunk_count": chunk_count,
                "deleted_indices": deleted_indices,
            },
        )

    @staticmethod
    def writes_blocked(
        owner_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITES_BLOCKED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            description="Save refused: stored data is corrupt",
            error_message=reason,
            details={"reason": reason},
        )

    @staticmethod
    def writes_unblocked(
        owner_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITES_UNBLOCKED,
            owner_id=owner_id,
            description="Writes re-enabled after manual resolution",
        )
