"""
Domain Models

Input entities arrive already fetched from the persistence layer and are
plain frozen dataclasses. Output contracts are pydantic models so that the
presentation layer can dump them straight to JSON.

Entities:
- Shop, Employee: storefronts and the personnel/leader hierarchy
- ShopPeriodRevenue: one row per shop per month
- ComprehensiveReport: one normalized daily report row
- GoalThresholds: feasible / breakthrough goals per shop per month
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ColorCategory(str, Enum):
    """Ordinal performance bucket, best first"""
    GREEN = "green"  # above breakthrough goal
    YELLOW = "yellow"  # feasible goal met
    RED = "red"  # within reach of the feasible goal
    PURPLE = "purple"  # below the near-goal ratio
    NO_COLOR = "no-color"  # no revenue or no goal


class ShopStatus(str, Enum):
    """Operating status of a shop"""
    OPERATING = "Đang Vận Hành"
    NEW = "Shop mới"
    STOPPED = "Đã Dừng"
    UNSET = "Chưa có"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "ShopStatus":
        """Map a stored status string onto the enum; anything unknown is UNSET"""
        if isinstance(value, ShopStatus):
            return value
        for status in cls:
            if value == status.value:
                return status
        return cls.UNSET


class Platform(str, Enum):
    """Marketplace a report was exported from"""
    SHOPEE = "shopee"
    TIKTOK = "tiktok"


def period_of(day: date) -> str:
    """Reporting period key ("YYYY-MM") for a calendar day"""
    return f"{day.year:04d}-{day.month:02d}"


# =============================================================================
# INPUT ENTITIES
# =============================================================================

@dataclass(frozen=True)
class Employee:
    """Personnel record; manager_id is a lookup key, not ownership"""
    id: str
    name: str
    email: Optional[str] = None
    manager_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


@dataclass(frozen=True)
class Shop:
    """Seller storefront"""
    id: str
    name: str
    status: Optional[str] = None
    personnel_id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ShopPeriodRevenue:
    """Revenue components of one shop in one period (smallest currency unit)"""
    shop_id: str
    period: str  # "YYYY-MM"
    total_revenue: int = 0
    cancelled_revenue: int = 0
    returned_revenue: int = 0
    platform_subsidized_revenue: int = 0

    @property
    def key(self) -> tuple:
        return (self.shop_id, self.period)


@dataclass(frozen=True)
class GoalThresholds:
    """Goals of one shop in one period; None means not set"""
    shop_id: str
    period: str
    feasible_goal: Optional[float] = None
    breakthrough_goal: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.feasible_goal is not None or self.breakthrough_goal is not None


@dataclass(frozen=True)
class ComprehensiveReport:
    """
    Normalized daily report row.

    The field set is the union of the Shopee and TikTok exports; fields a
    platform does not provide stay at zero.
    """
    shop_id: str
    report_date: date
    platform: Platform = Platform.SHOPEE

    # Money (smallest currency unit)
    total_revenue: int = 0
    cancelled_revenue: int = 0
    returned_revenue: int = 0
    platform_subsidized_revenue: int = 0
    refund_revenue: int = 0  # order-level refunds, informational
    average_order_value: float = 0.0

    # Counts
    total_orders: int = 0
    cancelled_orders: int = 0
    returned_orders: int = 0
    sku_orders: int = 0
    items_sold: int = 0
    product_clicks: int = 0
    total_visits: int = 0
    store_visits: int = 0
    total_buyers: int = 0
    new_buyers: int = 0
    existing_buyers: int = 0
    potential_buyers: int = 0

    # Rates (percent, 6.5 == 6.5%)
    conversion_rate: float = 0.0
    buyer_return_rate: float = 0.0

    # Goals occasionally travel with the report rows
    feasible_goal: Optional[float] = None
    breakthrough_goal: Optional[float] = None

    @property
    def key(self) -> tuple:
        return (self.shop_id, self.report_date)

    @property
    def period(self) -> str:
        return period_of(self.report_date)


@dataclass(frozen=True)
class UploadRow:
    """
    Raw spreadsheet row before normalization.

    `cells` maps the column label exactly as it appears in the header to the
    raw cell value (string, number, date or None). `row_number` is the
    1-based row in the source sheet, used in diagnostics.
    """
    row_number: int
    cells: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RevenueEntry:
    """Single revenue amount on a date (daily revenue uploads)"""
    shop_id: str
    revenue_date: date
    revenue_amount: float


@dataclass(frozen=True)
class ReportAdjustment:
    """
    Per-date totals from an order-level export.

    `values` holds only the report fields the export adjusts, e.g.
    {"cancelled_revenue": 350000, "cancelled_orders": 2}; every other field
    of the stored daily report is left alone.
    """
    shop_id: str
    report_date: date
    platform: Platform
    values: Dict[str, int] = field(default_factory=dict)

    @property
    def key(self) -> tuple:
        return (self.shop_id, self.report_date)


# =============================================================================
# OUTPUT CONTRACTS
# =============================================================================

class ShopPerformance(BaseModel):
    """One dashboard row: a shop, its revenue in the period and its category"""
    shop_id: str
    shop_name: str
    shop_status: ShopStatus = ShopStatus.UNSET
    personnel_id: Optional[str] = None
    personnel_name: str = "Chưa phân công"
    leader_id: Optional[str] = None
    leader_name: str = "Chưa có leader"

    total_revenue: int = 0
    cancelled_revenue: int = 0
    returned_revenue: int = 0
    platform_subsidized_revenue: int = 0
    projected_revenue: int = 0

    feasible_goal: Optional[float] = None
    breakthrough_goal: Optional[float] = None
    category: ColorCategory = ColorCategory.NO_COLOR

    last_report_date: Optional[date] = None
    previous_month_revenue: float = 0
    like_for_like_previous_month_revenue: float = 0
    forecast_revenue: float = 0


class ReportStatistics(BaseModel):
    """Flat frequency table over a set of shops"""
    total: int = 0
    green: int = 0
    yellow: int = 0
    red: int = 0
    purple: int = 0
    no_color: int = Field(default=0, serialization_alias="no-color")
    by_status: Dict[str, int] = Field(
        default_factory=lambda: {status.value: 0 for status in ShopStatus}
    )

    def count(self, category: ColorCategory) -> int:
        return getattr(self, category.name.lower())


class LeaderBreakdown(BaseModel):
    """Category breakdown for the shops under one leader"""
    leader_id: str
    leader_name: str
    shop_count: int = 0
    personnel_count: int = 0
    green: int = 0
    yellow: int = 0
    red: int = 0
    purple: int = 0
    no_color: int = Field(default=0, serialization_alias="no-color")


class PersonnelAchievement(BaseModel):
    """Personnel who reached a goal tier, with the shops that got them there"""
    personnel_key: str
    personnel_name: str
    leader_name: str
    shop_names: List[str] = Field(default_factory=list)


class UnderperformingShop(BaseModel):
    """Shop in the purple bucket with a positive feasible goal"""
    shop_name: str
    total_revenue: int
    projected_revenue: int
    feasible_goal: float
    breakthrough_goal: Optional[float] = None
    deficit: float


class ChartSlice(BaseModel):
    name: str
    value: int


class PerformanceAnalytics(BaseModel):
    """Personnel-level achievement view of a classified shop set"""
    total_shops: int = 0
    total_personnel: int = 0
    personnel_breakthrough: int = 0
    personnel_feasible: int = 0
    breakthrough_met: int = 0
    feasible_only_met: int = 0
    almost_met: int = 0
    not_met: int = 0
    underperforming_shops: List[UnderperformingShop] = Field(default_factory=list)
    pie_data: List[ChartSlice] = Field(default_factory=list)
    personnel_breakthrough_details: List[PersonnelAchievement] = Field(default_factory=list)
    personnel_feasible_details: List[PersonnelAchievement] = Field(default_factory=list)


class DashboardReport(BaseModel):
    """Everything the dashboard needs for one period"""
    period: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    shops: List[ShopPerformance] = Field(default_factory=list)
    statistics: ReportStatistics = Field(default_factory=ReportStatistics)
    leaders: List[LeaderBreakdown] = Field(default_factory=list)
    analytics: PerformanceAnalytics = Field(default_factory=PerformanceAnalytics)
