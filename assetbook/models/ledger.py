"""
Ledger Data Models

The ledger is the complete financial record of one owner:
asset snapshots by date, incomes and expenses by month, memos by date
and the FIRE settings. It is persisted as a single JSON document.

DESIGN DECISION: The JSON shape is the only format contract we own.
Field names on the wire are camelCase (as written by every client),
Python attributes are snake_case. Unknown fields are kept, so a ledger
written by a newer client survives a load/save cycle untouched.

Ledger values are snapshots. Every mutation builds a NEW Ledger;
nothing patches a ledger in place.
"""

import datetime as dt
import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


YearMonth = Annotated[str, StringConstraints(pattern=r"^\d{4}-\d{2}$")]


def to_whole_amount(value: Any) -> Any:
    """Round a numeric amount half-up to a whole TWD."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if isinstance(value, str):
        if not value.strip():
            return 0
        try:
            return int(Decimal(value.strip()).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        except ArithmeticError:
            return value
    return value


AMOUNT_TOLERANCE = Decimal("0.000001")


def _raw_amount(source: Any) -> Decimal:
    """Unrounded amount of an income source as given by the caller."""
    if isinstance(source, BaseModel):
        value = getattr(source, "amount", 0)
    elif isinstance(source, dict):
        value = source.get("amount", 0)
    else:
        raise TypeError(f"not an income source: {source!r}")
    if value is None or isinstance(value, bool):
        raise TypeError(f"not an amount: {value!r}")
    return Decimal(str(value).strip() or "0")


class LedgerModel(BaseModel):
    """Base for all persisted ledger objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# =============================================================================
# ASSETS
# =============================================================================

class AssetType(str, Enum):
    """How an asset's value behaves between snapshots."""
    FIXED = "fixed"        # deposits, cash
    FLOATING = "floating"  # stocks, funds, crypto


class AssetEntry(LedgerModel):
    """One asset line inside a dated snapshot."""

    id: Optional[Union[int, str]] = None
    type: AssetType = AssetType.FIXED
    name: str = ""
    amount: int = Field(
        default=0,
        description="Value normalized to TWD",
    )
    currency: str = "TWD"
    original_amount: Optional[float] = None
    exchange_rate: Optional[float] = None

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v: Any) -> Any:
        return to_whole_amount(v)


# =============================================================================
# INCOME
# =============================================================================

class IncomeSource(LedgerModel):
    """A single income line (salary, dividend, ...) within a month."""

    company: str = ""
    bank: str = ""
    currency: str = "TWD"
    original_amount: Optional[float] = None
    exchange_rate: Optional[float] = None
    amount: int = 0
    memo: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v: Any) -> Any:
        return to_whole_amount(v)


class IncomeMonth(LedgerModel):
    """
    All income of one month.

    INVARIANT: total_amount == sum(source.amount for source in sources).
    A missing total is computed; a mismatching one is rejected.
    """

    total_amount: int = 0
    sources: list[IncomeSource] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def drop_unrounded_total(cls, data: Any) -> Any:
        # A stored total equal to the exact sum of unrounded source amounts
        # is recomputed from the rounded sources instead of compared.
        if not isinstance(data, dict):
            return data
        key = "totalAmount" if "totalAmount" in data else "total_amount"
        sources = data.get("sources")
        if key not in data or not isinstance(sources, list) or not sources:
            return data
        try:
            raw_sum = sum(_raw_amount(source) for source in sources)
            total = Decimal(str(data[key]).strip() or "0")
        except (ArithmeticError, TypeError, ValueError):
            return data
        if abs(total - raw_sum) < AMOUNT_TOLERANCE:
            data = {k: v for k, v in data.items() if k != key}
        return data

    @field_validator("total_amount", mode="before")
    @classmethod
    def round_total(cls, v: Any) -> Any:
        return to_whole_amount(v)

    @model_validator(mode="after")
    def check_total_matches_sources(self) -> "IncomeMonth":
        expected = sum(source.amount for source in self.sources)
        if "total_amount" not in self.model_fields_set:
            self.total_amount = expected
        elif self.sources and self.total_amount != expected:
            raise ValueError(
                f"Income total {self.total_amount} does not match sum of sources {expected}"
            )
        return self

    @classmethod
    def from_sources(cls, sources: list[IncomeSource]) -> "IncomeMonth":
        return cls(
            total_amount=sum(source.amount for source in sources),
            sources=list(sources),
        )


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseEntry(LedgerModel):
    """
    One imported expense line.

    Expenses only ever arrive through import; a month is always
    replaced as a whole, individual entries are never edited.
    """

    id: Optional[Union[int, str]] = None
    date: str = Field(
        default="",
        description="Transaction date as imported (YYYY/MM/DD or YYYY-MM-DD)",
    )
    account: str = ""
    category: str = ""
    sub_category: str = ""
    name: str = ""
    amount: int = 0
    original_amount: Optional[float] = None
    currency: str = "TWD"

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v: Any) -> Any:
        return to_whole_amount(v)

    @property
    def expense_date(self) -> Optional[dt.date]:
        """Parsed transaction date, or None if it cannot be read."""
        try:
            return dt.date.fromisoformat(self.date.strip().replace("/", "-"))
        except ValueError:
            return None


# =============================================================================
# SETTINGS & LEDGER
# =============================================================================

class FireSettings(LedgerModel):
    """Retirement-target settings."""

    withdrawal_rate: float = Field(
        default=4.0,
        gt=0,
        description="Safe withdrawal rate in percent",
    )


class Ledger(LedgerModel):
    """
    The complete financial record for one owner.

    - records:  snapshot date -> asset lines
    - incomes:  YYYY-MM -> IncomeMonth
    - expenses: YYYY-MM -> expense lines
    - memos:    date -> free text
    """

    records: dict[date, list[AssetEntry]] = Field(default_factory=dict)
    memos: dict[date, str] = Field(default_factory=dict)
    incomes: dict[YearMonth, IncomeMonth] = Field(default_factory=dict)
    expenses: dict[YearMonth, list[ExpenseEntry]] = Field(default_factory=dict)
    fire_settings: FireSettings = Field(default_factory=FireSettings)

    @field_validator("records", "memos", "incomes", "expenses", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @classmethod
    def empty(cls) -> "Ledger":
        """The defined minimal ledger used when nothing is stored yet."""
        return cls()


class Chunk(BaseModel):
    """A fixed-size ordered fragment of a serialized ledger."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    content: str


def serialize_ledger(ledger: Ledger) -> str:
    """
    Serialize a ledger to its canonical compact JSON form.

    Equal ledgers always serialize to identical strings.
    """
    return ledger.model_dump_json(by_alias=True, exclude_none=True)


def parse_ledger(text: str) -> Ledger:
    """
    Parse a serialized ledger.

    Raises:
        json.JSONDecodeError: text is not valid JSON
        pydantic.ValidationError: JSON does not have the ledger shape
    """
    return Ledger.model_validate(json.loads(text))
