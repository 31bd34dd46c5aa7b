"""
Unit Tests - Revenue Aggregation
"""
from datetime import date

import polars as pl
import pytest

from shop_performance.aggregation.revenue import (
    RevenueLedger,
    adjustments_exceed_total,
    entries_to_frame,
    project_revenue,
    projected_revenue_of,
    sum_by_shop,
    sum_by_shop_and_date,
    summarize_revenue,
)
from shop_performance.models import Platform, ReportAdjustment, RevenueEntry, ShopPeriodRevenue


class TestProjectRevenue:
    """Tests for project_revenue"""

    def test_net_of_cancellations_and_returns(self):
        assert project_revenue(1000, 100, 50) == 850

    def test_clamped_at_zero(self):
        assert project_revenue(100, 80, 50) == 0

    def test_negative_components_clamped_first(self):
        """A negative cancellation is not added back"""
        assert project_revenue(1000, -200, 0) == 1000
        assert project_revenue(-500, 0, 0) == 0

    def test_missing_components(self):
        assert project_revenue(None, None, None) == 0
        assert project_revenue(500) == 500
        assert project_revenue(float("nan"), 10, 0) == 0

    def test_projected_revenue_of(self):
        row = ShopPeriodRevenue("shop-1", "2025-09", total_revenue=1000, cancelled_revenue=300)
        assert projected_revenue_of(row) == 700
        assert projected_revenue_of({"total_revenue": 1000, "returned_revenue": 1000}) == 0

    def test_adjustments_exceed_total(self):
        assert adjustments_exceed_total(
            ShopPeriodRevenue("shop-1", "2025-09", total_revenue=100, cancelled_revenue=80, returned_revenue=50)
        )
        assert not adjustments_exceed_total(ShopPeriodRevenue("shop-1", "2025-09", total_revenue=100))


class TestRollups:
    """Tests for polars rollups"""

    def test_sum_by_shop(self):
        df = pl.DataFrame({
            "shop_id": ["a", "b", "a"],
            "total_revenue": [100, 50, None],
            "cancelled_revenue": [10, 0, 5],
        })
        result = sum_by_shop(df)

        assert result["shop_id"].to_list() == ["a", "b"]
        assert result["total_revenue"].to_list() == [100, 50]
        assert result["cancelled_revenue"].to_list() == [15, 0]
        assert "returned_revenue" not in result.columns

    def test_sum_by_shop_clamps_each_row(self):
        df = pl.DataFrame({
            "shop_id": ["a", "a", "b"],
            "total_revenue": [1000, -300, -5],
            "cancelled_revenue": [-50, 20, 0],
        })
        result = sum_by_shop(df)

        assert result["total_revenue"].to_list() == [1000, 0]
        assert result["cancelled_revenue"].to_list() == [20, 0]

    def test_sum_by_shop_empty(self):
        result = sum_by_shop(pl.DataFrame(schema={"shop_id": pl.Utf8, "total_revenue": pl.Int64}))
        assert result.is_empty()
        assert result.columns == ["shop_id", "total_revenue"]

    def test_sum_by_shop_and_date(self):
        entries = [
            RevenueEntry("a", date(2025, 9, 1), 100),
            RevenueEntry("a", date(2025, 9, 1), 50),
            RevenueEntry("a", date(2025, 9, 2), 10),
            RevenueEntry("b", date(2025, 9, 1), 5),
        ]
        result = sum_by_shop_and_date(entries)

        assert result.height == 3
        assert result.row(0) == ("a", date(2025, 9, 1), 150.0)

    def test_entries_to_frame_empty(self):
        assert entries_to_frame([]).is_empty()


class TestSummarizeRevenue:
    """Tests for summarize_revenue"""

    def test_daily_and_monthly_totals(self):
        entries = [
            RevenueEntry("a", date(2025, 8, 31), 300),
            RevenueEntry("a", date(2025, 9, 1), 100),
            RevenueEntry("b", date(2025, 9, 1), 200),
            RevenueEntry("a", date(2025, 9, 2), 50),
        ]
        summary = summarize_revenue(entries)

        assert summary.total_revenue == 650
        assert summary.total_days == 3
        assert summary.average_daily == pytest.approx(650 / 3)
        assert summary.daily[0] == (date(2025, 8, 31), 300)
        assert summary.monthly == [("2025-08", 300), ("2025-09", 350)]

    def test_best_day_tie_goes_to_earliest(self):
        entries = [
            RevenueEntry("a", date(2025, 9, 3), 300),
            RevenueEntry("a", date(2025, 9, 1), 300),
        ]
        summary = summarize_revenue(entries)

        assert summary.highest_day == date(2025, 9, 1)
        assert summary.highest_day_revenue == 300

    def test_empty(self):
        summary = summarize_revenue([])
        assert summary.total_revenue == 0
        assert summary.highest_day is None


class TestRevenueLedger:
    """Tests for RevenueLedger"""

    def test_reupload_overwrites(self, report_factory):
        """Uploading the same key twice keeps the second value"""
        ledger = RevenueLedger()
        ledger.upsert_report(report_factory("shop-1", date(2025, 9, 1), 1000))
        replaced = ledger.upsert_report(report_factory("shop-1", date(2025, 9, 1), 2000))

        assert replaced is True
        assert ledger.get("shop-1", "2025-09").total_revenue == 2000

    def test_reupload_is_idempotent(self, report_factory):
        ledger = RevenueLedger()
        reports = [
            report_factory("shop-1", date(2025, 9, 1), 1000, cancelled=100),
            report_factory("shop-1", date(2025, 9, 2), 500),
        ]
        assert ledger.upsert_reports(reports) == 0
        first = ledger.period_revenue("2025-09")
        assert ledger.upsert_reports(reports) == 2

        assert ledger.period_revenue("2025-09") == first
        assert first["shop-1"].total_revenue == 1500
        assert first["shop-1"].cancelled_revenue == 100

    def test_daily_rows_summed_per_period(self, report_factory):
        ledger = RevenueLedger()
        ledger.upsert_reports([
            report_factory("shop-1", date(2025, 8, 31), 999),
            report_factory("shop-1", date(2025, 9, 1), 100),
            report_factory("shop-1", date(2025, 9, 30), 200),
            report_factory("shop-2", date(2025, 9, 15), 50, returned=10),
        ])
        revenue = ledger.period_revenue("2025-09")

        assert revenue["shop-1"].total_revenue == 300
        assert revenue["shop-2"].returned_revenue == 10
        assert revenue["shop-1"].period == "2025-09"

    def test_period_row_takes_precedence(self, report_factory):
        ledger = RevenueLedger()
        ledger.upsert_report(report_factory("shop-1", date(2025, 9, 1), 100))
        ledger.upsert_period(ShopPeriodRevenue("shop-1", "2025-09", total_revenue=5000))

        assert ledger.get("shop-1", "2025-09").total_revenue == 5000

    def test_period_row_last_write_wins(self):
        ledger = RevenueLedger()
        assert ledger.upsert_period(ShopPeriodRevenue("shop-1", "2025-09", total_revenue=1000)) is False
        assert ledger.upsert_period(ShopPeriodRevenue("shop-1", "2025-09", total_revenue=2000)) is True

        assert ledger.get("shop-1", "2025-09").total_revenue == 2000
        assert len(ledger) == 1

    def test_reports_for(self, report_factory):
        ledger = RevenueLedger()
        ledger.upsert_reports([
            report_factory("shop-1", date(2025, 9, 2), 1),
            report_factory("shop-1", date(2025, 9, 1), 1),
            report_factory("shop-2", date(2025, 9, 1), 1),
        ])

        assert [r.report_date.day for r in ledger.reports_for("2025-09", "shop-1")] == [1, 2]
        assert len(ledger.reports_for("2025-09")) == 3
        assert ledger.reports_for("2025-10") == []

    def test_unknown_shop(self):
        assert RevenueLedger().get("nope", "2025-09") is None

    def test_negative_daily_row_does_not_reduce_period(self, report_factory):
        """A negative day counts as 0, it is not subtracted from the month"""
        ledger = RevenueLedger()
        ledger.upsert_reports([
            report_factory("shop-1", date(2025, 9, 1), 1000),
            report_factory("shop-1", date(2025, 9, 2), -300),
        ])

        assert ledger.get("shop-1", "2025-09").total_revenue == 1000


class TestMergeAdjustments:
    """Tests for RevenueLedger.merge_adjustments"""

    def test_updates_only_adjusted_columns(self, report_factory):
        ledger = RevenueLedger()
        ledger.upsert_report(report_factory("shop-1", date(2025, 9, 1), 1000, returned=50, total_orders=9))

        updated = ledger.merge_adjustments([
            ReportAdjustment(
                "shop-1",
                date(2025, 9, 1),
                Platform.TIKTOK,
                {"cancelled_revenue": 200, "cancelled_orders": 2},
            )
        ])
        report = ledger.reports_for("2025-09", "shop-1")[0]

        assert updated == 1
        assert (report.total_revenue, report.returned_revenue, report.total_orders) == (1000, 50, 9)
        assert (report.cancelled_revenue, report.cancelled_orders) == (200, 2)
        assert ledger.get("shop-1", "2025-09").cancelled_revenue == 200

    def test_missing_day_is_created(self):
        ledger = RevenueLedger()

        updated = ledger.merge_adjustments([
            ReportAdjustment("shop-1", date(2025, 9, 3), Platform.TIKTOK, {"cancelled_revenue": 80})
        ])
        report = ledger.reports_for("2025-09", "shop-1")[0]

        assert updated == 0
        assert report.platform == Platform.TIKTOK
        assert report.cancelled_revenue == 80
        assert report.total_revenue == 0

    def test_reupload_replaces_adjustment(self, report_factory):
        ledger = RevenueLedger()
        adjustment = ReportAdjustment("shop-1", date(2025, 9, 1), Platform.TIKTOK, {"cancelled_revenue": 80})

        ledger.merge_adjustments([adjustment, adjustment])

        assert ledger.get("shop-1", "2025-09").cancelled_revenue == 80
