"""
Unit Tests - Report Normalizer
"""
from datetime import date

import polars as pl
import pytest

from shop_performance.ingestion.columns import SHOPEE_DAILY_REPORT, TIKTOK_DAILY_REPORT
from shop_performance.ingestion.normalizer import ReportNormalizer, normalize_rows
from shop_performance.models import Platform, UploadRow


class TestReportNormalizer:
    """Tests for ReportNormalizer"""

    def test_normalizes_valid_rows(self, shopee_rows):
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(shopee_rows, shop_id="shop-1")

        assert result.total_rows == 3
        assert result.processed_rows == 3
        first = result.records[0]
        assert first.shop_id == "shop-1"
        assert first.report_date == date(2025, 9, 1)
        assert first.platform == Platform.SHOPEE
        assert first.total_revenue == 1500000
        assert first.total_orders == 12
        assert first.cancelled_revenue == 100000
        assert first.conversion_rate == 6.5

    def test_malformed_cells_become_zero_with_issue(self, shopee_rows):
        """One bad cell never aborts the row or the batch"""
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(shopee_rows, shop_id="shop-1")

        third = result.records[2]
        assert third.total_revenue == 0
        assert third.total_orders == 0
        assert third.conversion_rate == 5.0

        assert len(result.issues) == 2
        issue = result.issues[0]
        assert issue.row == 7
        assert issue.column == "Tổng doanh số (VND)"
        assert issue.field == "total_revenue"
        assert issue.raw_value == "N/A"
        assert result.has_issues

    def test_blank_cells_are_zero_without_issue(self, shopee_rows):
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(shopee_rows, shop_id="shop-1")

        assert result.records[2].cancelled_revenue == 0
        assert result.records[2].returned_revenue == 0
        assert {i.field for i in result.issues} == {"total_revenue", "total_orders"}

    def test_absent_columns_default_to_zero(self, shopee_rows):
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(shopee_rows, shop_id="shop-1")

        assert "new_buyers" in result.missing_columns
        assert "total_revenue" not in result.missing_columns
        assert all(r.new_buyers == 0 for r in result.records)

    def test_unmapped_columns_are_ignored(self):
        rows = [UploadRow(2, {"Ngày": "01-09-2025", "Tổng doanh số (VND)": "10", "Ghi chú": "???"})]
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(rows, shop_id="shop-1")

        assert result.processed_rows == 1
        assert result.issues == []

    def test_rows_without_date_are_skipped(self):
        rows = [
            UploadRow(2, {"Ngày": "", "Tổng doanh số (VND)": "10"}),
            UploadRow(3, {"Ngày": "hôm qua", "Tổng doanh số (VND)": "10"}),
            UploadRow(4, {"Ngày": "02-09-2025", "Tổng doanh số (VND)": "10"}),
        ]
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(rows, shop_id="shop-1")

        assert result.processed_rows == 1
        assert [s.row for s in result.skipped] == [2, 3]
        assert result.skipped[0].reason == "Empty date column."
        assert result.skipped[1].reason == "Invalid date format: hôm qua"

    def test_fully_blank_rows_are_ignored(self):
        rows = [UploadRow(2, {"Ngày": None, "Tổng doanh số (VND)": ""})]
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(rows, shop_id="shop-1")

        assert result.processed_rows == 0
        assert result.skipped == []

    def test_empty_batch(self):
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize([], shop_id="shop-1")

        assert result.total_rows == 0
        assert result.records == []
        assert result.to_frame().is_empty()

    def test_tiktok_rows(self):
        rows = [
            UploadRow(4, {
                "Ngày": "2025-09-01",
                "Tổng giá trị hàng hóa (₫)": "3,000,000",
                "Doanh thu được hoàn lại (₫)": "200,000",
                "Doanh thu được trợ giá (₫)": "50,000",
                "Đơn hàng": "20",
                "Tỷ lệ chuyển đổi": "3.5%",
            })
        ]
        result = ReportNormalizer(TIKTOK_DAILY_REPORT).normalize(rows, shop_id="shop-9")
        record = result.records[0]

        assert record.platform == Platform.TIKTOK
        assert record.total_revenue == 3000000
        assert record.returned_revenue == 200000
        assert record.platform_subsidized_revenue == 50000
        assert record.total_orders == 20
        assert record.conversion_rate == 3.5
        assert record.cancelled_revenue == 0

    def test_currency_symbols_in_tiktok_cells(self):
        rows = [UploadRow(4, {"Ngày": "01/09/2025", "Tổng giá trị hàng hóa (₫)": "₫1,500,000"})]

        result = ReportNormalizer(TIKTOK_DAILY_REPORT).normalize(rows, shop_id="shop-9")

        assert result.records[0].total_revenue == 1500000
        assert result.issues == []

    @pytest.mark.parametrize(
        "column_map,header",
        [
            (TIKTOK_DAILY_REPORT, "Tổng giá trị hàng hóa (₫)"),
            (SHOPEE_DAILY_REPORT, "Tổng doanh số (VND)"),
        ],
    )
    def test_negative_amount_becomes_zero_with_issue(self, column_map, header):
        result = normalize_rows([{"Ngày": "01/09/2025", header: "-300"}], "shop-1", column_map)

        assert result.records[0].total_revenue == 0
        assert len(result.issues) == 1
        assert result.issues[0].reason == "negative amount"
        assert result.issues[0].raw_value == "-300"


class TestNormalizationResult:
    """Tests for NormalizationResult helpers"""

    def test_summary_limits_details(self):
        rows = [UploadRow(i, {"Ngày": "", "Tổng doanh số (VND)": "1"}) for i in range(2, 8)]
        result = normalize_rows([r.cells for r in rows], "shop-1", SHOPEE_DAILY_REPORT)

        summary = result.summary(max_details=3)
        assert summary["skipped_count"] == 6
        assert len(summary["skipped_details"]) == 3
        assert summary["processed_rows"] == 0

    def test_normalize_rows_numbers_from_first_row(self):
        result = normalize_rows(
            [{"Ngày": "01-09-2025", "Tổng số đơn hàng": "abc"}],
            "shop-1",
            SHOPEE_DAILY_REPORT,
            first_row_number=10,
        )
        assert result.issues[0].row == 10

    def test_to_frame(self, shopee_rows):
        result = ReportNormalizer(SHOPEE_DAILY_REPORT).normalize(shopee_rows, shop_id="shop-1")
        df = result.to_frame()

        assert isinstance(df, pl.DataFrame)
        assert df.height == 3
        assert df["total_revenue"].to_list() == [1500000, 2000000, 0]
        assert df["platform"].unique().to_list() == ["shopee"]


class TestLogging:
    """Parse issues are logged unless disabled"""

    def test_warnings_can_be_disabled(self, shopee_rows):
        normalizer = ReportNormalizer(SHOPEE_DAILY_REPORT, emit_warnings=False)
        result = normalizer.normalize(shopee_rows, shop_id="shop-1")

        # diagnostics are still collected
        assert len(result.issues) == 2

    @pytest.mark.parametrize("flag", ["false", "0"])
    def test_warnings_setting_from_environment(self, monkeypatch, flag):
        monkeypatch.setenv("INGEST_EMIT_PARSE_WARNINGS", flag)
        assert ReportNormalizer(SHOPEE_DAILY_REPORT).emit_warnings is False
