"""
Ledger Aggregation Engine

DESIGN DECISION: Aggregation is PURE and DETERMINISTIC.
Every method takes a ledger snapshot and recomputes its result from
scratch. Nothing is cached, nothing in the ledger is mutated.

Conventions shared by all statistics:
- A snapshot's value is the sum of its asset amounts
- Within a month (or year) the chronologically LAST snapshot wins;
  snapshots are never summed together
- Asset totals carry forward into months without a snapshot, income
  and expense totals never do
- Every ratio with a zero (or negative) denominator is exactly 0.0,
  because these values are shown to the user as percentages
"""

import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from assetbook.models.ledger import AssetEntry, AssetType, ExpenseEntry, Ledger
from assetbook.models.stats import (
    AssetBucketChange,
    AssetExtreme,
    AssetExtremes,
    FireStats,
    FireYearStat,
    FloatingChange,
    GrowthStat,
    MonthAnalysis,
    MonthStat,
    MonthValue,
    RangeAssets,
    RangeExpenses,
    RangeIncome,
    RangeStats,
    SnapshotTotal,
    Statement,
    YearStats,
    YearTrendPoint,
)


UNCATEGORIZED = "Uncategorized"
TOP_CATEGORY_COUNT = 5


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def split_month_key(key: str) -> tuple[int, int]:
    year, month = key.split("-")
    return int(year), int(month)


class LedgerAggregator:
    """
    Derives view statistics from a ledger.

    Stateless: one instance can serve any number of ledgers.
    """

    # =========================================================================
    # Building blocks
    # =========================================================================

    @staticmethod
    def snapshot_total(entries: Iterable[AssetEntry]) -> int:
        return sum(entry.amount for entry in entries)

    def snapshot_totals(self, ledger: Ledger) -> list[SnapshotTotal]:
        """All snapshots as totals, oldest first."""
        return [
            SnapshotTotal(snapshot_date=day, assets=self.snapshot_total(ledger.records[day]))
            for day in sorted(ledger.records)
        ]

    def year_end_assets(self, ledger: Ledger, year: int) -> int:
        """Total of the latest snapshot dated within `year`, 0 if none."""
        days = [day for day in ledger.records if day.year == year]
        if not days:
            return 0
        return self.snapshot_total(ledger.records[max(days)])

    def current_assets(self, ledger: Ledger) -> int:
        """Total of the most recent snapshot in the whole ledger."""
        if not ledger.records:
            return 0
        return self.snapshot_total(ledger.records[max(ledger.records)])

    @staticmethod
    def year_total_income(ledger: Ledger, year: int) -> int:
        return sum(
            income.total_amount
            for key, income in ledger.incomes.items()
            if split_month_key(key)[0] == year
        )

    @staticmethod
    def lifetime_income(ledger: Ledger) -> int:
        return sum(income.total_amount for income in ledger.incomes.values())

    @staticmethod
    def expense_total(entries: Iterable[ExpenseEntry]) -> int:
        return sum(entry.amount for entry in entries)

    # =========================================================================
    # Monthly view
    # =========================================================================

    def compute_monthly_stats(self, ledger: Ledger, year: int) -> list[MonthStat]:
        """
        Twelve MonthStat records for `year`.

        balance[i]        = (asset[i] - asset[i-1]) - expense[i]
        composite_score[i] = (income[i] - income[i-1]) + (asset[i] - asset[i-1])

        asset[-1] is the year-end total of the previous year (0 when that
        year has no snapshot), income[-1] is December of the previous year.
        """
        stats = [MonthStat(month=m) for m in range(1, 13)]

        # Latest snapshot of each month wins
        by_month: dict[int, list[SnapshotTotal]] = defaultdict(list)
        for snapshot in self.snapshot_totals(ledger):
            if snapshot.snapshot_date.year == year:
                by_month[snapshot.snapshot_date.month].append(snapshot)

        for month, snapshots in by_month.items():
            stat = stats[month - 1]
            latest = snapshots[-1]
            stat.has_record = True
            stat.assets = latest.assets
            stat.latest_date = latest.snapshot_date
            stat.all_records = snapshots

        opening = self.year_end_assets(ledger, year - 1)

        # Carry forward
        last_known = opening
        for stat in stats:
            if stat.has_record:
                last_known = stat.assets
            else:
                stat.assets = last_known

        for key in sorted(ledger.incomes):
            y, m = split_month_key(key)
            if y == year:
                stat = stats[m - 1]
                stat.income = ledger.incomes[key].total_amount
                if stat.latest_date is None:
                    stat.latest_date = date(y, m, 1)

        for key in sorted(ledger.expenses):
            y, m = split_month_key(key)
            if y == year:
                stat = stats[m - 1]
                stat.cost = self.expense_total(ledger.expenses[key])
                if stat.latest_date is None:
                    stat.latest_date = date(y, m, 1)

        for day in sorted(ledger.memos):
            if day.year == year:
                stat = stats[day.month - 1]
                stat.memo = ledger.memos[day]
                if stat.latest_date is None:
                    stat.latest_date = day

        previous_december = ledger.incomes.get(month_key(year - 1, 12))
        prev_income = previous_december.total_amount if previous_december else 0
        prev_asset = opening

        for stat in stats:
            asset_diff = stat.assets - prev_asset
            income_diff = stat.income - prev_income
            stat.balance = asset_diff - stat.cost
            stat.analysis = MonthAnalysis(
                income_diff=income_diff,
                asset_diff=asset_diff,
                composite_score=income_diff + asset_diff,
            )
            prev_asset = stat.assets
            prev_income = stat.income

        return stats

    def compute_asset_extremes(self, ledger: Ledger, year: int) -> AssetExtremes:
        """Highest and lowest single snapshot within `year`."""
        points = [
            snapshot for snapshot in self.snapshot_totals(ledger)
            if snapshot.snapshot_date.year == year
        ]
        if not points:
            return AssetExtremes()
        highest = max(points, key=lambda s: s.assets)
        lowest = min(points, key=lambda s: s.assets)
        return AssetExtremes(
            max=AssetExtreme(val=highest.assets, month=highest.snapshot_date.month),
            min=AssetExtreme(val=lowest.assets, month=lowest.snapshot_date.month),
        )

    # =========================================================================
    # Yearly view
    # =========================================================================

    @staticmethod
    def available_years(ledger: Ledger, up_to: Optional[int] = None) -> list[int]:
        """Years with any data, newest first, none after `up_to` (default: this year)."""
        if up_to is None:
            up_to = date.today().year

        years = set()
        years.update(day.year for day in ledger.records)
        years.update(day.year for day in ledger.memos)
        years.update(split_month_key(key)[0] for key in ledger.incomes)
        years.update(split_month_key(key)[0] for key in ledger.expenses)

        return sorted((y for y in years if y <= up_to), reverse=True)

    def compute_yearly_trend(
        self,
        ledger: Ledger,
        up_to: Optional[int] = None,
    ) -> list[YearTrendPoint]:
        """Per-year assets and income ratios, oldest first."""
        lifetime = self.lifetime_income(ledger)
        trend = []
        for year in sorted(self.available_years(ledger, up_to)):
            income = self.year_total_income(ledger, year)
            last_year_income = self.year_total_income(ledger, year - 1)
            trend.append(
                YearTrendPoint(
                    year=year,
                    assets=self.year_end_assets(ledger, year),
                    income_growth_rate=safe_ratio(income, last_year_income),
                    income_share=safe_ratio(income, lifetime),
                )
            )
        return trend

    def compute_year_stats(self, ledger: Ledger, year: int) -> YearStats:
        this_year_income = self.year_total_income(ledger, year)
        last_year_income = self.year_total_income(ledger, year - 1)
        lifetime = self.lifetime_income(ledger)

        this_year_assets = self.year_end_assets(ledger, year)
        last_year_assets = self.year_end_assets(ledger, year - 1)
        growth_amount = this_year_assets - last_year_assets

        return YearStats(
            total_income=this_year_income,
            last_year_income=last_year_income,
            avg_income=this_year_income / 12,
            income_growth_rate=safe_ratio(this_year_income, last_year_income),
            income_share=safe_ratio(this_year_income, lifetime),
            total_accumulated_income=lifetime,
            this_year_assets=this_year_assets,
            last_year_assets=last_year_assets,
            real_asset_growth_amount=growth_amount,
            real_asset_growth_percentage=safe_ratio(growth_amount, last_year_assets),
            asset_growth_ratio=safe_ratio(this_year_assets, last_year_assets),
        )

    def compute_yearly_growth(self, ledger: Ledger, year: int) -> GrowthStat:
        """Change from the first to the last snapshot of `year`."""
        snapshots = [
            snapshot for snapshot in self.snapshot_totals(ledger)
            if snapshot.snapshot_date.year == year
        ]
        if len(snapshots) < 2:
            return GrowthStat()
        start, end = snapshots[0].assets, snapshots[-1].assets
        return GrowthStat(amount=end - start, rate=safe_ratio(end - start, start))

    # =========================================================================
    # FIRE
    # =========================================================================

    def compute_fire_stats(self, ledger: Ledger) -> FireStats:
        """
        Retirement target from average monthly expense.

        Months without any expense entry are left out of the average
        rather than counted as zero-expense months.
        """
        rate = ledger.fire_settings.withdrawal_rate
        recorded_months = [entries for entries in ledger.expenses.values() if entries]

        avg_expense = 0.0
        if recorded_months:
            total = sum(self.expense_total(entries) for entries in recorded_months)
            avg_expense = total / len(recorded_months)

        annual_expense = avg_expense * 12
        fire_target = annual_expense / (rate / 100) if rate > 0 else 0.0
        current = self.current_assets(ledger)

        return FireStats(
            avg_expense=avg_expense,
            annual_expense=annual_expense,
            fire_target=fire_target,
            current_assets=current,
            progress=safe_ratio(current, fire_target),
            withdrawal_rate=rate,
        )

    def compute_fire_yearly_stats(self, ledger: Ledger) -> list[FireYearStat]:
        """Average, highest and lowest monthly expense per year, newest first."""
        per_year: dict[int, list[MonthValue]] = defaultdict(list)
        for key in sorted(ledger.expenses):
            entries = ledger.expenses[key]
            if not entries:
                continue
            year, month = split_month_key(key)
            per_year[year].append(MonthValue(month=month, val=self.expense_total(entries)))

        result = []
        for year in sorted(per_year, reverse=True):
            months = per_year[year]
            result.append(
                FireYearStat(
                    year=year,
                    avg=sum(m.val for m in months) / len(months),
                    max=max(months, key=lambda m: m.val),
                    min=min(months, key=lambda m: m.val),
                )
            )
        return result

    # =========================================================================
    # Date ranges
    # =========================================================================

    def compute_range_stats(self, ledger: Ledger, start: date, end: date) -> RangeStats:
        """Income, asset and expense movement between two dates, both inclusive."""
        return RangeStats(
            start=start,
            end=end,
            income=self._range_income(ledger, start, end),
            assets=self._range_assets(ledger, start, end),
            expenses=self._range_expenses(ledger, start, end),
        )

    @staticmethod
    def _range_income(ledger: Ledger, start: date, end: date) -> RangeIncome:
        first, last = month_key(start.year, start.month), month_key(end.year, end.month)
        total = 0
        sources = []
        for key in sorted(ledger.incomes):
            if first <= key <= last:
                income = ledger.incomes[key]
                total += income.total_amount
                sources.extend({**source.model_dump(), "month": key} for source in income.sources)
        return RangeIncome(total=total, count=len(sources), sources=sources)

    def _range_assets(self, ledger: Ledger, start: date, end: date) -> RangeAssets:
        # Closest snapshot at or before each end of the range
        start_day = end_day = None
        for day in sorted(ledger.records):
            if day <= start:
                start_day = day
            if day <= end:
                end_day = day

        start_entries = ledger.records.get(start_day, []) if start_day else []
        end_entries = ledger.records.get(end_day, []) if end_day else []
        start_fixed, start_floating = self._split_by_type(start_entries)
        end_fixed, end_floating = self._split_by_type(end_entries)

        start_by_name = self._floating_by_name(start_entries)
        end_by_name = self._floating_by_name(end_entries)
        changes = []
        for name in sorted(set(start_by_name) | set(end_by_name)):
            before, after = start_by_name.get(name, 0), end_by_name.get(name, 0)
            if after != before:
                changes.append(
                    FloatingChange(name=name, start_amt=before, end_amt=after, change=after - before)
                )
        changes.sort(key=lambda c: abs(c.change), reverse=True)

        start_total = start_fixed + start_floating
        end_total = end_fixed + end_floating
        return RangeAssets(
            start_date=start_day,
            end_date=end_day,
            start_assets=start_total,
            end_assets=end_total,
            change=end_total - start_total,
            fixed=AssetBucketChange(start=start_fixed, end=end_fixed, change=end_fixed - start_fixed),
            floating=AssetBucketChange(
                start=start_floating, end=end_floating, change=end_floating - start_floating
            ),
            floating_changes=changes,
        )

    @staticmethod
    def _split_by_type(entries: list[AssetEntry]) -> tuple[int, int]:
        fixed = floating = 0
        for entry in entries:
            if entry.type == AssetType.FLOATING:
                floating += entry.amount
            else:
                fixed += entry.amount
        return fixed, floating

    @staticmethod
    def _floating_by_name(entries: list[AssetEntry]) -> dict[str, int]:
        by_name: dict[str, int] = {}
        for entry in entries:
            if entry.type == AssetType.FLOATING:
                by_name[entry.name] = entry.amount
        return by_name

    @staticmethod
    def _expenses_between(ledger: Ledger, start: date, end: date) -> list[ExpenseEntry]:
        return [
            entry
            for key in sorted(ledger.expenses)
            for entry in ledger.expenses[key]
            if entry.expense_date is not None and start <= entry.expense_date <= end
        ]

    def _range_expenses(self, ledger: Ledger, start: date, end: date) -> RangeExpenses:
        entries = self._expenses_between(ledger, start, end)
        categories: dict[str, int] = defaultdict(int)
        for entry in entries:
            categories[entry.category or UNCATEGORIZED] += entry.amount
        top = sorted(categories.items(), key=lambda item: item[1], reverse=True)
        return RangeExpenses(
            total=self.expense_total(entries),
            count=len(entries),
            top_categories=top[:TOP_CATEGORY_COUNT],
        )

    # =========================================================================
    # Statements & lookups
    # =========================================================================

    @staticmethod
    def expense_accounts(ledger: Ledger) -> list[str]:
        return sorted({
            entry.account
            for entries in ledger.expenses.values()
            for entry in entries
            if entry.account
        })

    def compute_statement(
        self,
        ledger: Ledger,
        account: str,
        start: date,
        end: date,
    ) -> Statement:
        """Expenses charged to one account between two dates, newest first."""
        items = [
            entry for entry in self._expenses_between(ledger, start, end)
            if entry.account == account
        ]
        items.sort(key=lambda entry: entry.expense_date, reverse=True)
        return Statement(
            account=account,
            start=start,
            end=end,
            items=items,
            total_amount=self.expense_total(items),
        )

    @staticmethod
    def asset_names(ledger: Ledger) -> list[str]:
        return sorted({
            entry.name
            for entries in ledger.records.values()
            for entry in entries
            if entry.name
        })
