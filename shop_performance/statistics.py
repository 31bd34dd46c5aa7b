"""
Statistics Rollup

Dashboard counts over a set of classified shops. Everything is recomputed
from the rows passed in; nothing is cached between calls.

- build_statistics: totals per colour category and per shop status
- leader_breakdowns: the same breakdown per leader, with shop and
  personnel counts
- performance_analytics: personnel achievement view and the list of shops
  furthest from their goal
"""

from typing import Dict, Iterable, List, Optional, Set

import structlog

from shop_performance.models import (
    ChartSlice,
    ColorCategory,
    LeaderBreakdown,
    PerformanceAnalytics,
    PersonnelAchievement,
    ReportStatistics,
    ShopPerformance,
    ShopStatus,
    UnderperformingShop,
)

logger = structlog.get_logger(__name__)

CATEGORY_FIELDS: Dict[ColorCategory, str] = {
    ColorCategory.GREEN: "green",
    ColorCategory.YELLOW: "yellow",
    ColorCategory.RED: "red",
    ColorCategory.PURPLE: "purple",
    ColorCategory.NO_COLOR: "no_color",
}

CHART_LABELS: Dict[ColorCategory, str] = {
    ColorCategory.GREEN: "Đột phá",
    ColorCategory.YELLOW: "Khả thi",
    ColorCategory.RED: "Gần đạt",
    ColorCategory.PURPLE: "Chưa đạt",
}

NO_LEADER_LABEL = "Chưa có Leader"


def build_statistics(shops: Iterable[ShopPerformance]) -> ReportStatistics:
    """Single pass frequency table; every shop lands in exactly one category"""
    stats = ReportStatistics()
    for shop in shops:
        stats.total += 1
        field_name = CATEGORY_FIELDS[shop.category]
        setattr(stats, field_name, getattr(stats, field_name) + 1)
        status = ShopStatus.coerce(shop.shop_status)
        stats.by_status[status.value] = stats.by_status.get(status.value, 0) + 1
    return stats


def leader_breakdowns(shops: Iterable[ShopPerformance]) -> List[LeaderBreakdown]:
    """
    Category breakdown per leader.

    Shops whose personnel has no manager are left out here; they still
    count in build_statistics.
    """
    breakdowns: Dict[str, LeaderBreakdown] = {}
    personnel: Dict[str, Set[str]] = {}
    for shop in shops:
        if not shop.leader_id:
            continue
        entry = breakdowns.get(shop.leader_id)
        if entry is None:
            entry = LeaderBreakdown(leader_id=shop.leader_id, leader_name=shop.leader_name)
            breakdowns[shop.leader_id] = entry
            personnel[shop.leader_id] = set()
        entry.shop_count += 1
        field_name = CATEGORY_FIELDS[shop.category]
        setattr(entry, field_name, getattr(entry, field_name) + 1)
        if shop.personnel_id:
            personnel[shop.leader_id].add(shop.personnel_id)

    for leader_id, entry in breakdowns.items():
        entry.personnel_count = len(personnel[leader_id])

    return sorted(breakdowns.values(), key=lambda b: (b.leader_name, b.leader_id))


def _personnel_key(shop: ShopPerformance) -> Optional[str]:
    return shop.personnel_id or None


def _add_achievement(
    details: Dict[str, PersonnelAchievement],
    key: str,
    shop: ShopPerformance,
) -> None:
    entry = details.get(key)
    if entry is None:
        entry = PersonnelAchievement(
            personnel_key=key,
            personnel_name=shop.personnel_name,
            leader_name=shop.leader_name if shop.leader_id else NO_LEADER_LABEL,
        )
        details[key] = entry
    entry.shop_names.append(shop.shop_name)


def performance_analytics(shops: Iterable[ShopPerformance]) -> PerformanceAnalytics:
    """
    Personnel-level view of a classified shop set.

    A green shop counts its personnel as both breakthrough and feasible
    achievers. Purple shops with a positive feasible goal are listed as
    underperforming, worst deficit first.
    """
    shops = list(shops)
    counts = {category: 0 for category in ColorCategory}
    all_personnel: Set[str] = set()
    breakthrough: Dict[str, PersonnelAchievement] = {}
    feasible: Dict[str, PersonnelAchievement] = {}
    underperforming: List[UnderperformingShop] = []

    for shop in shops:
        counts[shop.category] += 1
        key = _personnel_key(shop)
        if key:
            all_personnel.add(key)

        if shop.category == ColorCategory.GREEN and key:
            _add_achievement(breakthrough, key, shop)
            _add_achievement(feasible, key, shop)
        elif shop.category == ColorCategory.YELLOW and key:
            _add_achievement(feasible, key, shop)
        elif shop.category == ColorCategory.PURPLE and shop.feasible_goal and shop.feasible_goal > 0:
            underperforming.append(
                UnderperformingShop(
                    shop_name=shop.shop_name,
                    total_revenue=shop.total_revenue,
                    projected_revenue=shop.projected_revenue,
                    feasible_goal=shop.feasible_goal,
                    breakthrough_goal=shop.breakthrough_goal,
                    deficit=max(0, shop.feasible_goal - shop.projected_revenue),
                )
            )

    underperforming.sort(key=lambda s: s.deficit, reverse=True)
    pie_data = [
        ChartSlice(name=label, value=counts[category])
        for category, label in CHART_LABELS.items()
        if counts[category] > 0
    ]

    analytics = PerformanceAnalytics(
        total_shops=len(shops),
        total_personnel=len(all_personnel),
        personnel_breakthrough=len(breakthrough),
        personnel_feasible=len(feasible),
        breakthrough_met=counts[ColorCategory.GREEN],
        feasible_only_met=counts[ColorCategory.YELLOW],
        almost_met=counts[ColorCategory.RED],
        not_met=counts[ColorCategory.PURPLE],
        underperforming_shops=underperforming,
        pie_data=pie_data,
        personnel_breakthrough_details=list(breakthrough.values()),
        personnel_feasible_details=list(feasible.values()),
    )
    logger.debug(
        "Performance analytics computed",
        shops=analytics.total_shops,
        personnel=analytics.total_personnel,
        underperforming=len(underperforming),
    )
    return analytics
