"""
Report Ingestion Module
"""
from .columns import (
    TIKTOK_CANCELLED_ORDERS,
    TIKTOK_REFUNDED_ORDERS,
    AdjustmentMap,
    ColumnMap,
    ColumnSpec,
    MatchMode,
    SHOPEE_DAILY_REPORT,
    TIKTOK_DAILY_REPORT,
    get_adjustment_map,
    get_column_map,
)
from .normalizer import NormalizationResult, ParseIssue, ReportNormalizer, SkippedRow, normalize_rows
from .parsers import parse_currency, parse_integer, parse_number, parse_percentage, parse_report_date
from .workbook import read_upload
from .adjustments import AdjustmentResult, read_adjustment_upload, rollup_adjustments

__all__ = [
    "AdjustmentMap",
    "ColumnMap",
    "ColumnSpec",
    "MatchMode",
    "SHOPEE_DAILY_REPORT",
    "TIKTOK_DAILY_REPORT",
    "TIKTOK_CANCELLED_ORDERS",
    "TIKTOK_REFUNDED_ORDERS",
    "get_adjustment_map",
    "get_column_map",
    "NormalizationResult",
    "ParseIssue",
    "ReportNormalizer",
    "SkippedRow",
    "normalize_rows",
    "parse_currency",
    "parse_integer",
    "parse_number",
    "parse_percentage",
    "parse_report_date",
    "read_upload",
    "AdjustmentResult",
    "read_adjustment_upload",
    "rollup_adjustments",
]
