"""Data models package."""

from assetbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from assetbook.models.ledger import (
    AssetEntry,
    AssetType,
    Chunk,
    ExpenseEntry,
    FireSettings,
    IncomeMonth,
    IncomeSource,
    Ledger,
    parse_ledger,
    serialize_ledger,
)
from assetbook.models.stats import (
    AssetExtremes,
    FireStats,
    FireYearStat,
    GrowthStat,
    MonthAnalysis,
    MonthStat,
    RangeStats,
    SnapshotTotal,
    Statement,
    YearStats,
    YearTrendPoint,
)

__all__ = [
    # Ledger
    "AssetEntry",
    "AssetType",
    "Chunk",
    "ExpenseEntry",
    "FireSettings",
    "IncomeMonth",
    "IncomeSource",
    "Ledger",
    "parse_ledger",
    "serialize_ledger",
    # Statistics
    "AssetExtremes",
    "FireStats",
    "FireYearStat",
    "GrowthStat",
    "MonthAnalysis",
    "MonthStat",
    "RangeStats",
    "SnapshotTotal",
    "Statement",
    "YearStats",
    "YearTrendPoint",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
