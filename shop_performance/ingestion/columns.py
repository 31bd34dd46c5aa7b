"""
Column Mapping Tables

Declares, as data, which spreadsheet column feeds which report field and
with which parser. Tables are checked once when they are built; the
normalizer never inspects column labels on its own.

Header resolution:
- Daily report tables (ColumnMap) bind each label to the LAST matching
  header of the upload, the way the marketplace header loop assigns them.
- Order export tables (AdjustmentMap) list label variants in priority
  order; the first variant found wins, and for that variant the first
  matching header.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from shop_performance.exceptions import ColumnMapError
from shop_performance.ingestion.parsers import STRICT_PARSERS
from shop_performance.models import ComprehensiveReport, Platform


class MatchMode(str, Enum):
    """How a header label is compared with the declared label"""
    EXACT = "exact"
    CONTAINS = "contains"


@dataclass(frozen=True)
class ColumnSpec:
    """One source column: header label -> report field, parser"""
    label: str
    field: str
    parser: str
    match: MatchMode = MatchMode.EXACT

    def matches(self, header: str) -> bool:
        header = header.strip()
        if self.match == MatchMode.EXACT:
            return header == self.label
        return self.label.lower() in header.lower()


# Fields filled from outside the table
_RESERVED_FIELDS = {"shop_id", "report_date", "platform"}
_REPORT_FIELDS = {f.name for f in fields(ComprehensiveReport)} - _RESERVED_FIELDS


class ColumnMap:
    """
    Validated mapping table for one report export format.

    Example:
        column_map = ColumnMap(
            name="shopee_daily",
            platform=Platform.SHOPEE,
            date_column="Ngày",
            columns=[ColumnSpec("Tổng doanh số (VND)", "total_revenue", "money")],
        )
        resolved = column_map.resolve(headers)
    """

    def __init__(
        self,
        name: str,
        platform: Platform,
        date_column: str,
        columns: Iterable[ColumnSpec],
        date_match: MatchMode = MatchMode.EXACT,
        anchor: Optional[str] = None,
    ):
        self.name = name
        self.platform = platform
        self.date_column = ColumnSpec(date_column, "report_date", "date", date_match)
        self.columns: Tuple[ColumnSpec, ...] = tuple(columns)
        # Cell that identifies the header row of an upload
        if anchor is None:
            self.anchor = self.date_column
        else:
            self.anchor = ColumnSpec(anchor, "report_date", "date", MatchMode.CONTAINS)
        self._validate()

    def _validate(self) -> None:
        """Reject tables that would silently misroute values"""
        seen_labels = set()
        seen_fields = set()
        for spec in self.columns:
            if spec.parser not in STRICT_PARSERS:
                raise ColumnMapError(
                    f"{self.name}: unknown parser '{spec.parser}' for column '{spec.label}'"
                )
            if spec.field not in _REPORT_FIELDS:
                raise ColumnMapError(
                    f"{self.name}: column '{spec.label}' targets unknown field '{spec.field}'"
                )
            if spec.label in seen_labels:
                raise ColumnMapError(f"{self.name}: duplicate column label '{spec.label}'")
            if spec.field in seen_fields:
                raise ColumnMapError(f"{self.name}: field '{spec.field}' mapped twice")
            seen_labels.add(spec.label)
            seen_fields.add(spec.field)

    @property
    def field_names(self) -> List[str]:
        return [spec.field for spec in self.columns]

    @property
    def anchors(self) -> Tuple[ColumnSpec, ...]:
        return (self.anchor,)

    def resolve(self, headers: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Bind each declared field (and "report_date") to a header present in
        an upload. When several headers match a label, the right-most one
        wins, so a CONTAINS label such as "Ngày" binds to the last column
        mentioning it. Fields with no matching header map to None and later
        default to 0.
        """
        headers = [h for h in headers if isinstance(h, str) and h.strip()]
        resolved: Dict[str, Optional[str]] = {}
        for spec in (self.date_column,) + self.columns:
            matching = [h for h in headers if spec.matches(h)]
            resolved[spec.field] = matching[-1] if matching else None
        return resolved

    def spec_for(self, field_name: str) -> ColumnSpec:
        for spec in self.columns:
            if spec.field == field_name:
                return spec
        raise KeyError(field_name)

    def __repr__(self) -> str:
        return f"ColumnMap(name={self.name!r}, columns={len(self.columns)})"


# =============================================================================
# BUILT-IN TABLES
# =============================================================================

SHOPEE_DAILY_REPORT = ColumnMap(
    name="shopee_daily",
    platform=Platform.SHOPEE,
    date_column="Ngày",
    columns=[
        ColumnSpec("Tổng doanh số (VND)", "total_revenue", "money"),
        ColumnSpec("Tổng số đơn hàng", "total_orders", "integer"),
        ColumnSpec("Doanh số trên mỗi đơn hàng", "average_order_value", "number"),
        ColumnSpec("Lượt nhấp vào sản phẩm", "product_clicks", "integer"),
        ColumnSpec("Số lượt truy cập", "total_visits", "integer"),
        ColumnSpec("Tỷ lệ chuyển đổi đơn hàng", "conversion_rate", "percentage"),
        ColumnSpec("Đơn đã hủy", "cancelled_orders", "integer"),
        ColumnSpec("Doanh số đơn hủy", "cancelled_revenue", "money"),
        ColumnSpec("Đơn đã hoàn trả / hoàn tiền", "returned_orders", "integer"),
        ColumnSpec("Doanh số các đơn Trả hàng/Hoàn tiền", "returned_revenue", "money"),
        ColumnSpec("số người mua", "total_buyers", "integer"),
        ColumnSpec("số người mua mới", "new_buyers", "integer"),
        ColumnSpec("số người mua hiện tại", "existing_buyers", "integer"),
        ColumnSpec("số người mua tiềm năng", "potential_buyers", "integer"),
        ColumnSpec("Tỉ lệ quay lại của người mua", "buyer_return_rate", "percentage"),
    ],
)

TIKTOK_DAILY_REPORT = ColumnMap(
    name="tiktok_daily",
    platform=Platform.TIKTOK,
    date_column="Ngày",
    date_match=MatchMode.CONTAINS,
    anchor="Tổng giá trị hàng hóa",
    columns=[
        ColumnSpec("Tổng giá trị hàng hóa", "total_revenue", "currency", MatchMode.CONTAINS),
        ColumnSpec("Doanh thu được hoàn lại", "returned_revenue", "currency", MatchMode.CONTAINS),
        ColumnSpec("Doanh thu được trợ giá", "platform_subsidized_revenue", "currency", MatchMode.CONTAINS),
        ColumnSpec("Số món bán ra", "items_sold", "integer", MatchMode.CONTAINS),
        ColumnSpec("Khách hàng", "total_buyers", "integer"),
        ColumnSpec("Lượt xem trang sản phẩm", "total_visits", "integer", MatchMode.CONTAINS),
        ColumnSpec("Lượt truy cập Cửa hàng", "store_visits", "integer", MatchMode.CONTAINS),
        ColumnSpec("Đơn hàng SKU", "sku_orders", "integer", MatchMode.CONTAINS),
        ColumnSpec("Đơn hàng", "total_orders", "integer"),
        ColumnSpec("Tỷ lệ chuyển đổi", "conversion_rate", "percentage", MatchMode.CONTAINS),
    ],
)

COLUMN_MAPS: Dict[str, ColumnMap] = {
    SHOPEE_DAILY_REPORT.name: SHOPEE_DAILY_REPORT,
    TIKTOK_DAILY_REPORT.name: TIKTOK_DAILY_REPORT,
}


# =============================================================================
# ORDER EXPORT TABLES
# =============================================================================

class AdjustmentMap:
    """
    Validated layout of an order-level export (one row per order).

    Each order contributes its amount to `revenue_field` of the daily
    report for the date in the time column; when `orders_field` is set the
    orders are also counted into it.

    Example:
        adjustment_map = AdjustmentMap(
            name="tiktok_cancelled",
            platform=Platform.TIKTOK,
            amount_labels=["Order Refund Amount"],
            time_labels=["Created Time"],
            revenue_field="cancelled_revenue",
            orders_field="cancelled_orders",
        )
        amount_header, time_header = adjustment_map.resolve(headers)
    """

    def __init__(
        self,
        name: str,
        platform: Platform,
        amount_labels: Iterable[str],
        time_labels: Iterable[str],
        revenue_field: str,
        orders_field: Optional[str] = None,
        match: MatchMode = MatchMode.CONTAINS,
    ):
        self.name = name
        self.platform = platform
        self.revenue_field = revenue_field
        self.orders_field = orders_field
        self.amount_columns = tuple(
            ColumnSpec(label, revenue_field, "currency", match) for label in amount_labels
        )
        self.time_columns = tuple(
            ColumnSpec(label, "report_date", "date", match) for label in time_labels
        )
        self._validate()

    def _validate(self) -> None:
        if not self.amount_columns or not self.time_columns:
            raise ColumnMapError(f"{self.name}: amount and time labels are required")
        for target in (self.revenue_field, self.orders_field):
            if target is not None and target not in _REPORT_FIELDS:
                raise ColumnMapError(f"{self.name}: unknown field '{target}'")
        if self.revenue_field == self.orders_field:
            raise ColumnMapError(f"{self.name}: field '{self.revenue_field}' mapped twice")

    @property
    def field_names(self) -> List[str]:
        return [f for f in (self.revenue_field, self.orders_field) if f is not None]

    @property
    def anchors(self) -> Tuple[ColumnSpec, ...]:
        return self.amount_columns

    @staticmethod
    def _first_match(specs: Tuple[ColumnSpec, ...], headers: List[str]) -> Optional[str]:
        for spec in specs:
            for header in headers:
                if spec.matches(header):
                    return header
        return None

    def resolve(self, headers: Iterable[str]) -> Tuple[Optional[str], Optional[str]]:
        """(amount header, time header) of an upload; None where absent"""
        headers = [h for h in headers if isinstance(h, str) and h.strip()]
        return (
            self._first_match(self.amount_columns, headers),
            self._first_match(self.time_columns, headers),
        )

    def describe_missing(self, amount_header: Optional[str], time_header: Optional[str]) -> List[str]:
        """Human-readable alternatives for each column that was not found"""
        missing = []
        if amount_header is None:
            missing.append(" or ".join(f"'{s.label}'" for s in self.amount_columns))
        if time_header is None:
            missing.append(" or ".join(f"'{s.label}'" for s in self.time_columns))
        return missing

    def __repr__(self) -> str:
        return f"AdjustmentMap(name={self.name!r}, revenue_field={self.revenue_field!r})"


TIKTOK_CANCELLED_ORDERS = AdjustmentMap(
    name="tiktok_cancelled",
    platform=Platform.TIKTOK,
    amount_labels=[
        "order total refund amount of all returned skus.",
        "Order Refund Amount",
        "Tổng số tiền",
    ],
    time_labels=[
        "the time when the order status changes to cancelled.",
        "Created Time",
        "Thời gian hủy",
    ],
    revenue_field="cancelled_revenue",
    orders_field="cancelled_orders",
)

TIKTOK_REFUNDED_ORDERS = AdjustmentMap(
    name="tiktok_refunds",
    platform=Platform.TIKTOK,
    amount_labels=["Order Refund Amount"],
    time_labels=["Created Time"],
    revenue_field="refund_revenue",
    match=MatchMode.EXACT,
)

ADJUSTMENT_MAPS: Dict[str, AdjustmentMap] = {
    TIKTOK_CANCELLED_ORDERS.name: TIKTOK_CANCELLED_ORDERS,
    TIKTOK_REFUNDED_ORDERS.name: TIKTOK_REFUNDED_ORDERS,
}


def get_adjustment_map(name: str) -> AdjustmentMap:
    """Look up a built-in order export table by name"""
    try:
        return ADJUSTMENT_MAPS[name]
    except KeyError:
        raise ColumnMapError(
            f"Unknown adjustment map '{name}'. Available: {sorted(ADJUSTMENT_MAPS)}"
        ) from None


def get_column_map(name: str) -> ColumnMap:
    """Look up a built-in column map by name"""
    try:
        return COLUMN_MAPS[name]
    except KeyError:
        raise ColumnMapError(
            f"Unknown column map '{name}'. Available: {sorted(COLUMN_MAPS)}"
        ) from None
