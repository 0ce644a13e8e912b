"""
Derived Statistics Models

View-model values produced by the LedgerAggregator.
They are never persisted; every call recomputes them from a ledger.

All ratios are plain floats where 0.0 means "not computable"
(zero or missing denominator). They never hold NaN or infinity.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from assetbook.models.ledger import ExpenseEntry


class SnapshotTotal(BaseModel):
    """Total value of one dated asset snapshot."""
    snapshot_date: date
    assets: int


class MonthAnalysis(BaseModel):
    """Month-over-month deltas."""
    income_diff: int = 0
    asset_diff: int = 0
    composite_score: int = 0


class MonthStat(BaseModel):
    """
    Statistics for one calendar month.

    `assets` is the latest snapshot of the month, or the carried-forward
    value when the month has none (`has_record` is then False).
    """
    month: int = Field(..., ge=1, le=12)
    assets: int = 0
    income: int = 0
    cost: int = 0
    balance: int = 0
    memo: Optional[str] = None
    has_record: bool = False
    latest_date: Optional[date] = None
    all_records: list[SnapshotTotal] = Field(default_factory=list)
    analysis: MonthAnalysis = Field(default_factory=MonthAnalysis)


class YearTrendPoint(BaseModel):
    """One point of the multi-year trend."""
    year: int
    assets: int
    income_growth_rate: float = 0.0
    income_share: float = 0.0


class YearStats(BaseModel):
    """Headline figures for a single year."""
    total_income: int = 0
    last_year_income: int = 0
    avg_income: float = 0.0
    income_growth_rate: float = 0.0
    income_share: float = 0.0
    total_accumulated_income: int = 0
    this_year_assets: int = 0
    last_year_assets: int = 0
    real_asset_growth_amount: int = 0
    real_asset_growth_percentage: float = 0.0
    asset_growth_ratio: float = 0.0


class GrowthStat(BaseModel):
    """Change between the first and last snapshot of a year."""
    amount: int = 0
    rate: float = 0.0


class FireStats(BaseModel):
    """Retirement-target (FIRE) figures."""
    avg_expense: float = 0.0
    annual_expense: float = 0.0
    fire_target: float = 0.0
    current_assets: int = 0
    progress: float = 0.0
    withdrawal_rate: float = 4.0


class MonthValue(BaseModel):
    month: int = 0
    val: int = 0


class FireYearStat(BaseModel):
    """Expense profile of one year, over the months that have expense data."""
    year: int
    avg: float = 0.0
    max: MonthValue = Field(default_factory=MonthValue)
    min: MonthValue = Field(default_factory=MonthValue)


class AssetExtreme(BaseModel):
    val: int = 0
    month: int = 0


class AssetExtremes(BaseModel):
    max: AssetExtreme = Field(default_factory=AssetExtreme)
    min: AssetExtreme = Field(default_factory=AssetExtreme)


# =============================================================================
# RANGE STATISTICS
# =============================================================================

class RangeIncome(BaseModel):
    total: int = 0
    count: int = 0
    sources: list[dict] = Field(default_factory=list)


class AssetBucketChange(BaseModel):
    start: int = 0
    end: int = 0
    change: int = 0


class FloatingChange(BaseModel):
    name: str
    start_amt: int = 0
    end_amt: int = 0
    change: int = 0


class RangeAssets(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_assets: int = 0
    end_assets: int = 0
    change: int = 0
    fixed: AssetBucketChange = Field(default_factory=AssetBucketChange)
    floating: AssetBucketChange = Field(default_factory=AssetBucketChange)
    floating_changes: list[FloatingChange] = Field(default_factory=list)


class RangeExpenses(BaseModel):
    total: int = 0
    count: int = 0
    top_categories: list[tuple[str, int]] = Field(default_factory=list)


class RangeStats(BaseModel):
    """Income, asset and expense movement between two dates (inclusive)."""
    start: date
    end: date
    income: RangeIncome = Field(default_factory=RangeIncome)
    assets: RangeAssets = Field(default_factory=RangeAssets)
    expenses: RangeExpenses = Field(default_factory=RangeExpenses)


class Statement(BaseModel):
    """Expenses of one account between two dates, newest first."""
    account: str
    start: date
    end: date
    items: list[ExpenseEntry] = Field(default_factory=list)
    total_amount: int = 0
