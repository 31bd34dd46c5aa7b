"""
Report Repository

Persistence adapter for the in-memory domain types. Writes are idempotent
upserts on the natural key (INSERT ... ON CONFLICT DO UPDATE), so
re-uploading the same day or month replaces the stored row.

Supported dialects: postgresql (asyncpg) and sqlite (aiosqlite).
"""

import calendar
from dataclasses import asdict, fields
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from shop_performance.models import (
    ComprehensiveReport,
    GoalThresholds,
    Platform,
    ReportAdjustment,
    ShopPeriodRevenue,
)
from shop_performance.storage.models import (
    DailyReportRecord,
    ShopGoalRecord,
    ShopRevenueRecord,
)

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 500

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

REPORT_FIELDS = [f.name for f in fields(ComprehensiveReport)]


def _month_bounds(period: str) -> tuple:
    year, month = (int(part) for part in period.split("-"))
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _report_row(report: ComprehensiveReport) -> Dict[str, Any]:
    row = asdict(report)
    row["platform"] = report.platform.value
    return row


class ReportRepository:
    """
    Reads and upserts report rows within a caller-owned session.

    Example:
        async with get_db() as db:
            repo = ReportRepository(db)
            await repo.upsert_reports(result.records)
            reports = await repo.reports_for_period("2025-09")
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self, model: Any):
        dialect = self.session.get_bind().dialect.name
        try:
            return _INSERTS[dialect](model)
        except KeyError:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'") from None

    async def _upsert(
        self,
        model: Any,
        rows: List[Dict[str, Any]],
        key: Sequence[str],
        touch_updated_at: bool = False,
        update_columns: Optional[Sequence[str]] = None,
    ) -> int:
        if not rows:
            return 0
        if update_columns is None:
            update_columns = [column for column in rows[0] if column not in key]
        for i in range(0, len(rows), CHUNK_SIZE):
            chunk = rows[i:i + CHUNK_SIZE]
            stmt = self._insert(model).values(chunk)
            update = {column: stmt.excluded[column] for column in update_columns}
            if touch_updated_at:
                update["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=update)
            await self.session.execute(stmt)
        logger.info("Rows upserted", table=model.__tablename__, rows=len(rows))
        return len(rows)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def upsert_reports(self, reports: Iterable[ComprehensiveReport]) -> int:
        """Upsert daily reports on (shop_id, report_date); later rows in the batch win"""
        latest: Dict[tuple, ComprehensiveReport] = {}
        for report in reports:
            latest[report.key] = report
        rows = [_report_row(r) for r in latest.values()]
        return await self._upsert(
            DailyReportRecord, rows, ["shop_id", "report_date"], touch_updated_at=True
        )

    async def upsert_period_revenue(self, revenues: Iterable[ShopPeriodRevenue]) -> int:
        """Upsert monthly revenue rows on (shop_id, period)"""
        latest = {r.key: asdict(r) for r in revenues}
        return await self._upsert(
            ShopRevenueRecord, list(latest.values()), ["shop_id", "period"], touch_updated_at=True
        )

    async def upsert_goals(self, goals: Iterable[GoalThresholds]) -> int:
        """Upsert goals on (shop_id, period)"""
        latest = {(g.shop_id, g.period): asdict(g) for g in goals}
        return await self._upsert(ShopGoalRecord, list(latest.values()), ["shop_id", "period"])

    async def merge_adjustments(self, adjustments: Iterable[ReportAdjustment]) -> int:
        """
        Write per-date order totals into daily_reports.

        Only the adjusted columns are updated on conflict; a day with no
        stored report gets a new row with every other column at 0.
        """
        grouped: Dict[tuple, Dict[tuple, Dict[str, Any]]] = {}
        for adjustment in adjustments:
            columns = tuple(sorted(adjustment.values))
            grouped.setdefault(columns, {})[adjustment.key] = {
                "shop_id": adjustment.shop_id,
                "report_date": adjustment.report_date,
                "platform": adjustment.platform.value,
                **adjustment.values,
            }
        written = 0
        for columns, latest in grouped.items():
            written += await self._upsert(
                DailyReportRecord,
                list(latest.values()),
                ["shop_id", "report_date"],
                touch_updated_at=True,
                update_columns=columns,
            )
        return written

    # =========================================================================
    # READS
    # =========================================================================

    async def reports_for_period(self, period: str) -> List[ComprehensiveReport]:
        """Daily reports whose report_date falls in the period, oldest first"""
        first, last = _month_bounds(period)
        result = await self.session.execute(
            select(DailyReportRecord)
            .where(DailyReportRecord.report_date.between(first, last))
            .order_by(DailyReportRecord.shop_id, DailyReportRecord.report_date)
        )
        reports = []
        for record in result.scalars():
            values = {name: getattr(record, name) for name in REPORT_FIELDS}
            values["platform"] = Platform(record.platform)
            reports.append(ComprehensiveReport(**values))
        return reports

    async def period_revenue(self, period: str) -> List[ShopPeriodRevenue]:
        result = await self.session.execute(
            select(ShopRevenueRecord)
            .where(ShopRevenueRecord.period == period)
            .order_by(ShopRevenueRecord.shop_id)
        )
        return [
            ShopPeriodRevenue(
                shop_id=r.shop_id,
                period=r.period,
                total_revenue=r.total_revenue or 0,
                cancelled_revenue=r.cancelled_revenue or 0,
                returned_revenue=r.returned_revenue or 0,
                platform_subsidized_revenue=r.platform_subsidized_revenue or 0,
            )
            for r in result.scalars()
        ]

    async def goals_for_period(self, period: str) -> Dict[str, GoalThresholds]:
        result = await self.session.execute(
            select(ShopGoalRecord).where(ShopGoalRecord.period == period)
        )
        return {
            r.shop_id: GoalThresholds(
                shop_id=r.shop_id,
                period=r.period,
                feasible_goal=r.feasible_goal,
                breakthrough_goal=r.breakthrough_goal,
            )
            for r in result.scalars()
        }
