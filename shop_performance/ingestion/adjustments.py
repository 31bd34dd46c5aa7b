"""
Order Export Rollup

TikTok cancellation and refund exports list one order per row. They are
summed per report date into ReportAdjustment records, which are merged
into the shop's daily report rows without touching the other columns.

Rows are skipped (and reported) when the time cell is missing or not a
date, or when the amount is blank or not a non-negative number.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from shop_performance.config import get_settings
from shop_performance.exceptions import CellParseError, WorkbookError
from shop_performance.ingestion.columns import AdjustmentMap
from shop_performance.ingestion.normalizer import SkippedRow
from shop_performance.ingestion.parsers import coerce_currency, is_blank, parse_report_date
from shop_performance.ingestion.workbook import Source, read_upload
from shop_performance.models import ReportAdjustment, UploadRow

logger = structlog.get_logger(__name__)


@dataclass
class AdjustmentResult:
    """Per-date adjustments produced from one order export"""
    adjustments: List[ReportAdjustment] = field(default_factory=list)
    skipped: List[SkippedRow] = field(default_factory=list)
    total_rows: int = 0
    order_rows: int = 0

    @property
    def dates(self) -> List[date]:
        return [a.report_date for a in self.adjustments]

    def summary(self, max_details: Optional[int] = None) -> Dict[str, Any]:
        limit = max_details if max_details is not None else get_settings().ingestion.max_skipped_details
        return {
            "total_rows": self.total_rows,
            "order_rows": self.order_rows,
            "updated_dates": len(self.adjustments),
            "skipped_count": len(self.skipped),
            "skipped_details": [
                {"row": s.row, "reason": s.reason} for s in self.skipped[:limit]
            ],
        }


def _rollup_frame(dates: List[date], amounts: List[int], adjustment_map: AdjustmentMap) -> pl.DataFrame:
    df = pl.DataFrame(
        {"report_date": dates, "amount": amounts},
        schema={"report_date": pl.Date, "amount": pl.Int64},
    )
    aggs = [pl.col("amount").sum().alias(adjustment_map.revenue_field)]
    if adjustment_map.orders_field:
        aggs.append(pl.col("amount").count().alias(adjustment_map.orders_field))
    return df.group_by("report_date").agg(aggs).sort("report_date")


def rollup_adjustments(
    rows: Iterable[UploadRow],
    shop_id: str,
    adjustment_map: AdjustmentMap,
) -> AdjustmentResult:
    """
    Sum an order export per report date.

    Raises:
        WorkbookError: the amount or time column is missing
    """
    rows = list(rows)
    result = AdjustmentResult(total_rows=len(rows))

    headers: List[str] = []
    for row in rows:
        for header in row.cells:
            if header not in headers:
                headers.append(header)
    amount_header, time_header = adjustment_map.resolve(headers)
    if rows and (amount_header is None or time_header is None):
        missing = adjustment_map.describe_missing(amount_header, time_header)
        raise WorkbookError(
            f"Required columns {' and '.join(missing)} not found. "
            f"Found headers: [{', '.join(headers)}]"
        )

    dates: List[date] = []
    amounts: List[int] = []
    for row in rows:
        if all(is_blank(v) for v in row.cells.values()):
            continue
        raw_time = row.cells.get(time_header)
        raw_amount = row.cells.get(amount_header)

        report_date = parse_report_date(raw_time)
        if report_date is None:
            reason = "Empty date column." if is_blank(raw_time) else f"Invalid date format: {raw_time}"
            result.skipped.append(SkippedRow(row=row.row_number, reason=reason))
            continue
        if is_blank(raw_amount):
            result.skipped.append(SkippedRow(row=row.row_number, reason="Empty amount."))
            continue
        try:
            amount = coerce_currency(raw_amount)
        except CellParseError as e:
            result.skipped.append(
                SkippedRow(row=row.row_number, reason=f"Invalid amount ({e.reason}): {raw_amount}")
            )
            continue
        dates.append(report_date)
        amounts.append(amount)

    result.order_rows = len(amounts)
    rolled = _rollup_frame(dates, amounts, adjustment_map)
    for values in rolled.iter_rows(named=True):
        report_date = values.pop("report_date")
        result.adjustments.append(
            ReportAdjustment(
                shop_id=shop_id,
                report_date=report_date,
                platform=adjustment_map.platform,
                values={name: int(value or 0) for name, value in values.items()},
            )
        )

    logger.info(
        "Order export rolled up",
        adjustment_map=adjustment_map.name,
        shop_id=shop_id,
        total_rows=result.total_rows,
        orders=result.order_rows,
        dates=len(result.adjustments),
        skipped=len(result.skipped),
    )
    return result


def read_adjustment_upload(
    source: Source,
    shop_id: str,
    adjustment_map: AdjustmentMap,
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
) -> AdjustmentResult:
    """Read an order export file and roll it up per date"""
    rows = read_upload(source, adjustment_map, filename=filename, sheet_name=sheet_name)
    return rollup_adjustments(rows, shop_id, adjustment_map)
