"""
Tests for ledger statistics.

Figures below are worked out by hand from the `sample_ledger` fixture:
snapshots total 500000 (2023-12-31), 500000 (2024-03-01),
600000 (2024-03-20) and 650000 (2024-09-05).
"""

from datetime import date

import pytest

from assetbook.analytics import LedgerAggregator, safe_ratio
from assetbook.models.ledger import AssetEntry, AssetType, Ledger


@pytest.fixture
def aggregator():
    return LedgerAggregator()


def snapshot(amount: int, name: str = "Savings", kind: AssetType = AssetType.FIXED) -> list[AssetEntry]:
    return [AssetEntry(type=kind, name=name, amount=amount)]


class TestSafeRatio:

    def test_zero_denominator(self):
        assert safe_ratio(5, 0) == 0.0

    def test_negative_denominator(self):
        assert safe_ratio(5, -10) == 0.0

    def test_regular_ratio(self):
        assert safe_ratio(3, 4) == 0.75


class TestBuildingBlocks:

    def test_year_end_assets_uses_latest_snapshot(self, aggregator, sample_ledger):
        assert aggregator.year_end_assets(sample_ledger, 2024) == 650000
        assert aggregator.year_end_assets(sample_ledger, 2023) == 500000
        assert aggregator.year_end_assets(sample_ledger, 2022) == 0

    def test_year_end_assets_ignores_older_years(self, aggregator):
        ledger = Ledger(records={date(2022, 6, 1): snapshot(1000)})
        assert aggregator.year_end_assets(ledger, 2023) == 0

    def test_year_total_income(self, aggregator, sample_ledger):
        assert aggregator.year_total_income(sample_ledger, 2024) == 210000
        assert aggregator.year_total_income(sample_ledger, 2023) == 60000
        assert aggregator.lifetime_income(sample_ledger) == 270000

    def test_current_assets(self, aggregator, sample_ledger):
        assert aggregator.current_assets(sample_ledger) == 650000
        assert aggregator.current_assets(Ledger.empty()) == 0


class TestMonthlyStats:

    def test_january_balance_and_composite_score(self, aggregator, january_ledger):
        stats = aggregator.compute_monthly_stats(january_ledger, 2024)
        january = stats[0]

        assert january.assets == 100000
        assert january.income == 50000
        assert january.cost == 20000
        assert january.balance == 80000
        assert january.analysis.composite_score == 150000
        assert january.latest_date == date(2024, 1, 15)

    def test_always_twelve_months(self, aggregator):
        stats = aggregator.compute_monthly_stats(Ledger.empty(), 2024)

        assert [s.month for s in stats] == list(range(1, 13))
        assert all(s.assets == 0 and s.balance == 0 for s in stats)

    def test_carry_forward_without_prior_year(self, aggregator):
        ledger = Ledger(records={
            date(2024, 3, 10): snapshot(1000),
            date(2024, 9, 10): snapshot(4000),
        })

        assets = [s.assets for s in aggregator.compute_monthly_stats(ledger, 2024)]

        assert assets[0:2] == [0, 0]
        assert assets[2:8] == [1000] * 6
        assert assets[8:12] == [4000] * 4

    def test_carry_forward_from_prior_year(self, aggregator, sample_ledger):
        stats = aggregator.compute_monthly_stats(sample_ledger, 2024)
        assets = [s.assets for s in stats]

        assert assets[0:2] == [500000, 500000]
        assert assets[2:8] == [600000] * 6
        assert assets[8:12] == [650000] * 4
        assert [s.has_record for s in stats] == [
            False, False, True, False, False, False,
            False, False, True, False, False, False,
        ]

    def test_gap_year_starts_from_zero(self, aggregator):
        ledger = Ledger(records={
            date(2022, 6, 1): snapshot(1000),
            date(2024, 1, 15): snapshot(1500),
        })

        gap_year = aggregator.compute_monthly_stats(ledger, 2023)
        assert [s.assets for s in gap_year] == [0] * 12

        january = aggregator.compute_monthly_stats(ledger, 2024)[0]
        assert january.assets == 1500
        assert january.balance == 1500

    def test_latest_snapshot_of_month_wins(self, aggregator, sample_ledger):
        march = aggregator.compute_monthly_stats(sample_ledger, 2024)[2]

        assert march.assets == 600000
        assert march.latest_date == date(2024, 3, 20)
        assert [r.assets for r in march.all_records] == [500000, 600000]

    def test_month_figures(self, aggregator, sample_ledger):
        stats = aggregator.compute_monthly_stats(sample_ledger, 2024)
        january, february, march, april = stats[0:4]

        assert (january.income, january.cost, january.balance) == (60000, 15000, -15000)
        assert january.analysis.income_diff == 0
        assert february.analysis.income_diff == -60000
        assert february.cost == 0
        assert march.balance == 100000 - 20000
        assert march.analysis.composite_score == 150000 + 100000
        assert april.analysis.income_diff == -150000

    def test_memo_and_latest_date_without_snapshot(self, aggregator, sample_ledger):
        stats = aggregator.compute_monthly_stats(sample_ledger, 2024)

        assert stats[2].memo == "bonus month"
        assert stats[5].memo == "moved flat"
        assert stats[5].latest_date == date(2024, 6, 2)
        assert stats[0].latest_date == date(2024, 1, 1)
        assert stats[10].latest_date is None

    def test_does_not_mutate_ledger(self, aggregator, sample_ledger):
        before = sample_ledger.model_dump()
        aggregator.compute_monthly_stats(sample_ledger, 2024)
        assert sample_ledger.model_dump() == before


class TestYearlyStats:

    def test_available_years(self, aggregator, sample_ledger):
        assert aggregator.available_years(sample_ledger, up_to=2030) == [2024, 2023]
        assert aggregator.available_years(sample_ledger, up_to=2023) == [2023]

    def test_year_stats(self, aggregator, sample_ledger):
        stats = aggregator.compute_year_stats(sample_ledger, 2024)

        assert stats.total_income == 210000
        assert stats.last_year_income == 60000
        assert stats.avg_income == 17500
        assert stats.income_growth_rate == 3.5
        assert stats.income_share == pytest.approx(210000 / 270000)
        assert stats.total_accumulated_income == 270000
        assert stats.this_year_assets == 650000
        assert stats.last_year_assets == 500000
        assert stats.real_asset_growth_amount == 150000
        assert stats.real_asset_growth_percentage == pytest.approx(0.3)
        assert stats.asset_growth_ratio == pytest.approx(1.3)

    def test_first_year_ratios_are_zero(self, aggregator, sample_ledger):
        stats = aggregator.compute_year_stats(sample_ledger, 2023)

        assert stats.last_year_income == 0
        assert stats.income_growth_rate == 0.0
        assert stats.last_year_assets == 0
        assert stats.real_asset_growth_percentage == 0.0
        assert stats.asset_growth_ratio == 0.0

    def test_empty_ledger_is_all_zero(self, aggregator):
        stats = aggregator.compute_year_stats(Ledger.empty(), 2024)

        assert stats.income_share == 0.0
        assert stats.income_growth_rate == 0.0
        assert stats.asset_growth_ratio == 0.0

    def test_yearly_trend(self, aggregator, sample_ledger):
        trend = aggregator.compute_yearly_trend(sample_ledger, up_to=2030)

        assert [p.year for p in trend] == [2023, 2024]
        assert [p.assets for p in trend] == [500000, 650000]
        assert trend[0].income_growth_rate == 0.0
        assert trend[1].income_growth_rate == 3.5

    def test_yearly_growth(self, aggregator, sample_ledger):
        growth = aggregator.compute_yearly_growth(sample_ledger, 2024)

        assert growth.amount == 150000
        assert growth.rate == pytest.approx(0.3)

    def test_yearly_growth_needs_two_snapshots(self, aggregator, sample_ledger):
        growth = aggregator.compute_yearly_growth(sample_ledger, 2023)
        assert (growth.amount, growth.rate) == (0, 0.0)

    def test_asset_extremes(self, aggregator, sample_ledger):
        extremes = aggregator.compute_asset_extremes(sample_ledger, 2024)

        assert (extremes.max.val, extremes.max.month) == (650000, 9)
        assert (extremes.min.val, extremes.min.month) == (500000, 3)

    def test_asset_extremes_without_data(self, aggregator):
        extremes = aggregator.compute_asset_extremes(Ledger.empty(), 2024)
        assert extremes.max.val == 0 and extremes.min.val == 0


class TestFireStats:

    def test_fire_stats_skip_months_without_expenses(self, aggregator, sample_ledger):
        stats = aggregator.compute_fire_stats(sample_ledger)

        assert stats.avg_expense == 17500
        assert stats.annual_expense == 210000
        assert stats.fire_target == pytest.approx(5_250_000)
        assert stats.current_assets == 650000
        assert stats.progress == pytest.approx(650000 / 5_250_000)
        assert stats.withdrawal_rate == 4.0

    def test_fire_stats_without_expenses(self, aggregator):
        stats = aggregator.compute_fire_stats(Ledger.empty())

        assert stats.fire_target == 0.0
        assert stats.progress == 0.0

    def test_fire_yearly_stats(self, aggregator, sample_ledger):
        [year] = aggregator.compute_fire_yearly_stats(sample_ledger)

        assert year.year == 2024
        assert year.avg == 17500
        assert (year.max.month, year.max.val) == (3, 20000)
        assert (year.min.month, year.min.val) == (1, 15000)


class TestRangesAndStatements:

    def test_range_stats(self, aggregator, sample_ledger):
        stats = aggregator.compute_range_stats(sample_ledger, date(2024, 1, 1), date(2024, 3, 31))

        assert stats.income.total == 210000
        assert stats.income.count == 3
        assert {s["month"] for s in stats.income.sources} == {"2024-01", "2024-03"}

        assets = stats.assets
        assert assets.start_date == date(2023, 12, 31)
        assert assets.end_date == date(2024, 3, 20)
        assert assets.change == 100000
        assert (assets.fixed.start, assets.fixed.end) == (300000, 330000)
        assert (assets.floating.start, assets.floating.end) == (200000, 270000)
        assert [c.name for c in assets.floating_changes] == ["Crypto", "ETF"]
        assert assets.floating_changes[0].change == 40000

        assert stats.expenses.total == 35000
        assert stats.expenses.count == 4
        assert stats.expenses.top_categories == [
            ("Food", 27000),
            ("Uncategorized", 5000),
            ("Transport", 3000),
        ]

    def test_range_before_any_snapshot(self, aggregator, sample_ledger):
        stats = aggregator.compute_range_stats(sample_ledger, date(2020, 1, 1), date(2020, 12, 31))

        assert stats.assets.start_date is None
        assert stats.assets.change == 0
        assert stats.expenses.count == 0

    def test_statement_is_newest_first(self, aggregator, sample_ledger):
        statement = aggregator.compute_statement(
            sample_ledger, "Card", date(2024, 1, 1), date(2024, 3, 31)
        )

        assert [i.amount for i in statement.items] == [5000, 15000, 12000]
        assert statement.total_amount == 32000

    def test_statement_respects_dates(self, aggregator, sample_ledger):
        statement = aggregator.compute_statement(
            sample_ledger, "Card", date(2024, 3, 1), date(2024, 3, 10)
        )
        assert statement.total_amount == 15000

    def test_lookups(self, aggregator, sample_ledger):
        assert aggregator.expense_accounts(sample_ledger) == ["Card", "Cash"]
        assert aggregator.asset_names(sample_ledger) == ["Crypto", "ETF", "Savings"]
