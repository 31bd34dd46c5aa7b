"""
Revenue Aggregation Module

Authoritative projected revenue per shop and period.

- project_revenue: total - cancelled - returned, clamped at zero
- RevenueLedger: last-write-wins store of uploaded rows, keyed by
  (shop_id, report_date) for daily reports and (shop_id, period) for
  monthly rows
- sum_by_shop / sum_by_shop_and_date: polars group-by rollups of raw
  revenue entries
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import polars as pl
import structlog

from shop_performance.ingestion.normalizer import reports_to_frame
from shop_performance.models import (
    ComprehensiveReport,
    ReportAdjustment,
    RevenueEntry,
    ShopPeriodRevenue,
)

logger = structlog.get_logger(__name__)

MONEY_COLUMNS = [
    "total_revenue",
    "cancelled_revenue",
    "returned_revenue",
    "platform_subsidized_revenue",
]


def _component(value: Optional[float], name: str) -> int:
    """Coalesce a revenue component to a non-negative integer amount"""
    if value is None or value != value:  # None or NaN
        return 0
    amount = int(round(value))
    if amount < 0:
        logger.debug("Negative revenue component clamped to 0", component=name, value=amount)
        return 0
    return amount


def project_revenue(
    total_revenue: Optional[float],
    cancelled_revenue: Optional[float] = 0,
    returned_revenue: Optional[float] = 0,
) -> int:
    """
    Net projected revenue: max(0, total - cancelled - returned).

    Each component is clamped to 0 first; a negative parsed amount is not
    reinterpreted as a subtraction.
    """
    total = _component(total_revenue, "total_revenue")
    cancelled = _component(cancelled_revenue, "cancelled_revenue")
    returned = _component(returned_revenue, "returned_revenue")
    net = total - cancelled - returned
    if net < 0:
        logger.debug(
            "Adjustments exceed gross revenue, projection clamped to 0",
            total=total,
            cancelled=cancelled,
            returned=returned,
        )
        return 0
    return net


def projected_revenue_of(revenue: Union[ShopPeriodRevenue, Mapping]) -> int:
    """project_revenue for a ShopPeriodRevenue row or a plain mapping"""
    if isinstance(revenue, Mapping):
        return project_revenue(
            revenue.get("total_revenue"),
            revenue.get("cancelled_revenue"),
            revenue.get("returned_revenue"),
        )
    return project_revenue(
        revenue.total_revenue,
        revenue.cancelled_revenue,
        revenue.returned_revenue,
    )


def adjustments_exceed_total(revenue: ShopPeriodRevenue) -> bool:
    """True when cancellations and returns are larger than gross revenue"""
    return revenue.cancelled_revenue + revenue.returned_revenue > revenue.total_revenue


# =============================================================================
# ROLLUPS
# =============================================================================

def sum_by_shop(df: pl.DataFrame, columns: Optional[List[str]] = None) -> pl.DataFrame:
    """
    Sum money columns per shop_id (columns absent from df are skipped).

    Each row is clamped at 0 before summing, so a negative row never
    offsets the other days of the period.
    """
    columns = [c for c in (columns or MONEY_COLUMNS) if c in df.columns]
    if df.is_empty():
        return pl.DataFrame(
            schema={"shop_id": pl.Utf8, **{c: pl.Int64 for c in columns}}
        )
    return (
        df.group_by("shop_id")
        .agg([pl.col(c).fill_null(0).clip(lower_bound=0).sum().alias(c) for c in columns])
        .sort("shop_id")
    )


def entries_to_frame(entries: Iterable[RevenueEntry]) -> pl.DataFrame:
    """Raw revenue entries as a DataFrame (shop_id, revenue_date, revenue_amount)"""
    entries = list(entries)
    return pl.DataFrame(
        {
            "shop_id": [e.shop_id for e in entries],
            "revenue_date": [e.revenue_date for e in entries],
            "revenue_amount": [float(e.revenue_amount or 0) for e in entries],
        },
        schema={"shop_id": pl.Utf8, "revenue_date": pl.Date, "revenue_amount": pl.Float64},
    )


def sum_by_shop_and_date(entries: Iterable[RevenueEntry]) -> pl.DataFrame:
    """Sum revenue entries sharing shop_id and revenue_date"""
    df = entries_to_frame(entries)
    return (
        df.group_by(["shop_id", "revenue_date"])
        .agg(pl.col("revenue_amount").sum())
        .sort(["shop_id", "revenue_date"])
    )


@dataclass
class RevenueSummary:
    """Daily and monthly totals of a set of revenue entries"""
    total_revenue: float = 0.0
    average_daily: float = 0.0
    highest_day: Optional[date] = None
    highest_day_revenue: float = 0.0
    total_days: int = 0
    daily: List[Tuple[date, float]] = field(default_factory=list)
    monthly: List[Tuple[str, float]] = field(default_factory=list)


def summarize_revenue(entries: Iterable[RevenueEntry]) -> RevenueSummary:
    """
    Per-date and per-month totals across all shops in `entries`.

    Days are ordered chronologically; ties for the best day go to the
    earliest date.
    """
    df = entries_to_frame(entries)
    if df.is_empty():
        return RevenueSummary()

    daily = (
        df.group_by("revenue_date")
        .agg(pl.col("revenue_amount").sum().alias("revenue"))
        .sort("revenue_date")
    )
    monthly = (
        df.with_columns(pl.col("revenue_date").dt.strftime("%Y-%m").alias("month"))
        .group_by("month")
        .agg(pl.col("revenue_amount").sum().alias("revenue"))
        .sort("month")
    )

    daily_rows = list(zip(daily["revenue_date"].to_list(), daily["revenue"].to_list()))
    best_day, best_revenue = daily_rows[0]
    for day, revenue in daily_rows[1:]:
        if revenue > best_revenue:
            best_day, best_revenue = day, revenue

    total = float(daily["revenue"].sum())
    return RevenueSummary(
        total_revenue=total,
        average_daily=total / len(daily_rows),
        highest_day=best_day,
        highest_day_revenue=best_revenue,
        total_days=len(daily_rows),
        daily=daily_rows,
        monthly=list(zip(monthly["month"].to_list(), monthly["revenue"].to_list())),
    )


# =============================================================================
# LEDGER
# =============================================================================

class RevenueLedger:
    """
    In-memory view of stored report rows with overwrite-by-key semantics.

    Re-uploading a key replaces the earlier row, it is never summed with it.
    A monthly row uploaded for (shop_id, period) takes precedence over the
    daily rows of that shop and month.

    Example:
        ledger = RevenueLedger()
        ledger.upsert_reports(result.records)
        revenue = ledger.period_revenue("2025-09")
    """

    def __init__(self):
        self._daily: Dict[Tuple[str, date], ComprehensiveReport] = {}
        self._periods: Dict[Tuple[str, str], ShopPeriodRevenue] = {}

    def upsert_report(self, report: ComprehensiveReport) -> bool:
        """Store a daily report; returns True if it replaced an existing row"""
        replaced = report.key in self._daily
        if replaced:
            logger.debug("Daily report overwritten", shop_id=report.shop_id, report_date=str(report.report_date))
        self._daily[report.key] = report
        return replaced

    def upsert_reports(self, reports: Iterable[ComprehensiveReport]) -> int:
        """Store many daily reports; returns how many replaced existing rows"""
        return sum(1 for report in reports if self.upsert_report(report))

    def merge_adjustment(self, adjustment: ReportAdjustment) -> bool:
        """
        Overwrite the adjusted columns of a daily report, creating the row
        when the day has not been uploaded yet.

        Returns True if an existing row was updated.
        """
        existing = self._daily.get(adjustment.key)
        if existing is None:
            self._daily[adjustment.key] = ComprehensiveReport(
                shop_id=adjustment.shop_id,
                report_date=adjustment.report_date,
                platform=adjustment.platform,
                **adjustment.values,
            )
            return False
        self._daily[adjustment.key] = replace(existing, **adjustment.values)
        return True

    def merge_adjustments(self, adjustments: Iterable[ReportAdjustment]) -> int:
        """Merge many adjustments; returns how many updated existing rows"""
        return sum(1 for adjustment in adjustments if self.merge_adjustment(adjustment))

    def upsert_period(self, revenue: ShopPeriodRevenue) -> bool:
        """Store a monthly row; returns True if it replaced an existing row"""
        replaced = revenue.key in self._periods
        if replaced:
            logger.debug("Period revenue overwritten", shop_id=revenue.shop_id, period=revenue.period)
        self._periods[revenue.key] = revenue
        return replaced

    def reports_for(self, period: str, shop_id: Optional[str] = None) -> List[ComprehensiveReport]:
        """Daily reports of a period, oldest first"""
        reports = [
            r for r in self._daily.values()
            if r.period == period and (shop_id is None or r.shop_id == shop_id)
        ]
        return sorted(reports, key=lambda r: (r.shop_id, r.report_date))

    def period_revenue(self, period: str) -> Dict[str, ShopPeriodRevenue]:
        """Revenue components per shop for a period"""
        totals: Dict[str, ShopPeriodRevenue] = {}
        rolled = sum_by_shop(reports_to_frame(self.reports_for(period)))
        for row in rolled.iter_rows(named=True):
            totals[row["shop_id"]] = ShopPeriodRevenue(
                shop_id=row["shop_id"],
                period=period,
                **{c: int(row.get(c) or 0) for c in MONEY_COLUMNS},
            )
        for (shop_id, row_period), revenue in self._periods.items():
            if row_period == period:
                totals[shop_id] = revenue
        return totals

    def get(self, shop_id: str, period: str) -> Optional[ShopPeriodRevenue]:
        return self.period_revenue(period).get(shop_id)

    def __len__(self) -> int:
        return len(self._daily) + len(self._periods)

