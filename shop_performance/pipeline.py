"""
Reporting Pipeline

End-to-end orchestration:

    upload rows -> normalizer -> quality checks -> ledger
    ledger -> revenue aggregation -> goal classification -> rollups

Example:
    pipeline = ReportingPipeline()
    pipeline.ingest_file("report.xlsx", shop_id="shop-1", column_map=SHOPEE_DAILY_REPORT)
    dashboard = pipeline.build_dashboard("2025-09", shops, employees, goals)
    payload = dashboard.model_dump(mode="json", by_alias=True)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from shop_performance.aggregation import (
    RevenueLedger,
    forecast_month_end,
    previous_period,
    project_revenue,
)
from shop_performance.classification import classify_goals
from shop_performance.ingestion import (
    AdjustmentMap,
    AdjustmentResult,
    ColumnMap,
    NormalizationResult,
    ReportNormalizer,
    read_upload,
    rollup_adjustments,
)
from shop_performance.models import (
    ComprehensiveReport,
    DashboardReport,
    Employee,
    GoalThresholds,
    Shop,
    ShopPerformance,
    ShopPeriodRevenue,
    ShopStatus,
    UploadRow,
)
from shop_performance.quality import ValidationResult, create_report_validator
from shop_performance.statistics import (
    build_statistics,
    leader_breakdowns,
    performance_analytics,
)

logger = structlog.get_logger(__name__)


@dataclass
class IngestionSummary:
    """Outcome of one upload"""
    shop_id: str
    normalization: NormalizationResult
    validation: ValidationResult
    replaced_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        body = self.normalization.summary()
        body["shop_id"] = self.shop_id
        body["replaced_rows"] = self.replaced_rows
        body["validation"] = self.validation.to_dict()
        return body


@dataclass
class AdjustmentSummary:
    """Outcome of one order export upload"""
    shop_id: str
    result: AdjustmentResult
    updated_rows: int = 0

    @property
    def created_rows(self) -> int:
        return len(self.result.adjustments) - self.updated_rows

    def to_dict(self) -> Dict[str, Any]:
        body = self.result.summary()
        body["shop_id"] = self.shop_id
        body["updated_rows"] = self.updated_rows
        body["created_rows"] = self.created_rows
        return body


# =============================================================================
# SHOP MERGING AND GOAL RESOLUTION
# =============================================================================

def _newest_first_key(shop: Shop) -> tuple:
    created = shop.created_at or datetime.min
    return (shop.personnel_id is not None, created)


def merge_duplicate_shops(shops: Iterable[Shop]) -> List[List[Shop]]:
    """
    Group shops sharing a (trimmed) name.

    The first entry of each group supplies the display data: an entry with
    assigned personnel beats one without, then the newest created_at wins.
    Groups keep the order in which names first appear.
    """
    groups: Dict[str, List[Shop]] = {}
    for shop in shops:
        groups.setdefault((shop.name or "").strip(), []).append(shop)
    merged = []
    for name, members in groups.items():
        members = sorted(members, key=_newest_first_key, reverse=True)
        if len(members) > 1:
            logger.debug("Duplicate shops merged", shop_name=name, shop_ids=[s.id for s in members])
        merged.append(members)
    return merged


def resolve_goals(
    shop_ids: Iterable[str],
    period: str,
    goals: Mapping[str, GoalThresholds],
    reports: Iterable[ComprehensiveReport],
) -> Optional[GoalThresholds]:
    """
    Goals for a (possibly merged) shop.

    The goal table wins; otherwise the latest report in the period that
    carries a goal.
    """
    shop_ids = list(shop_ids)
    for shop_id in shop_ids:
        found = goals.get(shop_id)
        if found is not None and found.is_set:
            return found

    carrying = [
        r for r in reports
        if r.feasible_goal is not None or r.breakthrough_goal is not None
    ]
    if not carrying:
        return None
    latest = max(carrying, key=lambda r: r.report_date)
    return GoalThresholds(
        shop_id=shop_ids[0] if shop_ids else latest.shop_id,
        period=period,
        feasible_goal=latest.feasible_goal,
        breakthrough_goal=latest.breakthrough_goal,
    )


# =============================================================================
# PIPELINE
# =============================================================================

class ReportingPipeline:
    """
    Stateless apart from the ledger it owns.

    Args:
        ledger: Existing ledger (e.g. loaded from the report store)
        near_goal_ratio: Override for the red threshold (settings default)
        strict_validation: Fail quality checks on warnings as well
    """

    def __init__(
        self,
        ledger: Optional[RevenueLedger] = None,
        near_goal_ratio: Optional[float] = None,
        strict_validation: bool = False,
    ):
        self.ledger = ledger if ledger is not None else RevenueLedger()
        self.near_goal_ratio = near_goal_ratio
        self.strict_validation = strict_validation

    @classmethod
    async def from_repository(cls, repository, period: str, **kwargs) -> "ReportingPipeline":
        """Pipeline whose ledger holds the stored rows of `period` and the month before"""
        ledger = RevenueLedger()
        for p in (previous_period(period), period):
            ledger.upsert_reports(await repository.reports_for_period(p))
            for revenue in await repository.period_revenue(p):
                ledger.upsert_period(revenue)
        logger.info("Ledger loaded from report store", period=period, rows=len(ledger))
        return cls(ledger=ledger, **kwargs)

    # =========================================================================
    # INGESTION
    # =========================================================================

    def ingest(
        self,
        rows: Iterable[UploadRow],
        shop_id: str,
        column_map: ColumnMap,
    ) -> IngestionSummary:
        """Normalize, check and store one shop's upload"""
        result = ReportNormalizer(column_map).normalize(rows, shop_id)
        validation = create_report_validator(self.strict_validation).validate(result.to_frame())
        replaced = self.ledger.upsert_reports(result.records)

        logger.info(
            "Upload ingested",
            shop_id=shop_id,
            column_map=column_map.name,
            records=result.processed_rows,
            replaced=replaced,
            validation=validation.status.value,
        )
        return IngestionSummary(
            shop_id=shop_id,
            normalization=result,
            validation=validation,
            replaced_rows=replaced,
        )

    def ingest_file(
        self,
        source,
        shop_id: str,
        column_map: ColumnMap,
        filename: Optional[str] = None,
        sheet_name: Optional[str] = None,
    ) -> IngestionSummary:
        rows = read_upload(source, column_map, filename=filename, sheet_name=sheet_name)
        return self.ingest(rows, shop_id, column_map)

    def ingest_adjustments(
        self,
        rows: Iterable[UploadRow],
        shop_id: str,
        adjustment_map: AdjustmentMap,
    ) -> AdjustmentSummary:
        """Roll up an order export per date and merge it into the daily rows"""
        result = rollup_adjustments(rows, shop_id, adjustment_map)
        updated = self.ledger.merge_adjustments(result.adjustments)

        logger.info(
            "Order export merged",
            shop_id=shop_id,
            adjustment_map=adjustment_map.name,
            dates=len(result.adjustments),
            updated=updated,
        )
        return AdjustmentSummary(shop_id=shop_id, result=result, updated_rows=updated)

    def ingest_adjustment_file(
        self,
        source,
        shop_id: str,
        adjustment_map: AdjustmentMap,
        filename: Optional[str] = None,
        sheet_name: Optional[str] = None,
    ) -> AdjustmentSummary:
        rows = read_upload(source, adjustment_map, filename=filename, sheet_name=sheet_name)
        return self.ingest_adjustments(rows, shop_id, adjustment_map)

    def load_period_revenue(self, revenues: Iterable[ShopPeriodRevenue]) -> int:
        """Store monthly rows directly; returns how many replaced earlier rows"""
        return sum(1 for revenue in revenues if self.ledger.upsert_period(revenue))

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def _shop_performance(
        self,
        members: List[Shop],
        period: str,
        revenue: Mapping[str, ShopPeriodRevenue],
        directory: Mapping[str, Employee],
        goals: Mapping[str, GoalThresholds],
    ) -> ShopPerformance:
        primary = members[0]
        member_ids = [s.id for s in members]

        components = {
            "total_revenue": 0,
            "cancelled_revenue": 0,
            "returned_revenue": 0,
            "platform_subsidized_revenue": 0,
        }
        projected = 0
        for shop_id in member_ids:
            row = revenue.get(shop_id)
            if row is None:
                continue
            for name in components:
                components[name] += getattr(row, name) or 0
            projected += project_revenue(row.total_revenue, row.cancelled_revenue, row.returned_revenue)

        current: List[ComprehensiveReport] = []
        previous: List[ComprehensiveReport] = []
        for shop_id in member_ids:
            current.extend(self.ledger.reports_for(period, shop_id))
            previous.extend(self.ledger.reports_for(previous_period(period), shop_id))
        forecast = forecast_month_end(current, previous)
        thresholds = resolve_goals(member_ids, period, goals, current)

        performance = ShopPerformance(
            shop_id=primary.id,
            shop_name=primary.name,
            shop_status=ShopStatus.coerce(primary.status),
            projected_revenue=projected,
            feasible_goal=thresholds.feasible_goal if thresholds else None,
            breakthrough_goal=thresholds.breakthrough_goal if thresholds else None,
            category=classify_goals(projected, thresholds, self.near_goal_ratio),
            last_report_date=max((r.report_date for r in current), default=None),
            previous_month_revenue=forecast.previous_month_revenue,
            like_for_like_previous_month_revenue=forecast.like_for_like_previous_month_revenue,
            forecast_revenue=forecast.forecast_revenue,
            **components,
        )

        personnel = directory.get(primary.personnel_id) if primary.personnel_id else None
        if personnel is not None:
            performance.personnel_id = personnel.id
            performance.personnel_name = personnel.display_name
            if personnel.manager_id:
                performance.leader_id = personnel.manager_id
                leader = directory.get(personnel.manager_id)
                if leader is not None:
                    performance.leader_name = leader.display_name
        elif primary.personnel_id:
            performance.personnel_id = primary.personnel_id
        return performance

    def build_dashboard(
        self,
        period: str,
        shops: Iterable[Shop],
        employees: Union[Mapping[str, Employee], Iterable[Employee]] = (),
        goals: Union[Mapping[str, GoalThresholds], Iterable[GoalThresholds], None] = None,
    ) -> DashboardReport:
        """
        Classified dashboard for one period.

        Every shop passed in gets a row, with or without revenue; shops
        without revenue or goals land in the no-color bucket.
        """
        directory = employees if isinstance(employees, Mapping) else {e.id: e for e in employees}
        if goals is None:
            goal_map: Mapping[str, GoalThresholds] = {}
        elif isinstance(goals, Mapping):
            goal_map = goals
        else:
            goal_map = {g.shop_id: g for g in goals if g.period == period}

        revenue = self.ledger.period_revenue(period)
        performances = [
            self._shop_performance(members, period, revenue, directory, goal_map)
            for members in merge_duplicate_shops(shops)
        ]

        dashboard = DashboardReport(
            period=period,
            shops=performances,
            statistics=build_statistics(performances),
            leaders=leader_breakdowns(performances),
            analytics=performance_analytics(performances),
        )
        logger.info(
            "Dashboard built",
            period=period,
            shops=dashboard.statistics.total,
            green=dashboard.statistics.green,
            yellow=dashboard.statistics.yellow,
            red=dashboard.statistics.red,
            purple=dashboard.statistics.purple,
            no_color=dashboard.statistics.no_color,
        )
        return dashboard
