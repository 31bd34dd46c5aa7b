"""
Revenue Aggregation Module
"""
from .forecast import ForecastMethod, MonthEndForecast, forecast_month_end, previous_period
from .revenue import (
    RevenueLedger,
    RevenueSummary,
    project_revenue,
    projected_revenue_of,
    sum_by_shop,
    sum_by_shop_and_date,
    summarize_revenue,
)

__all__ = [
    "ForecastMethod",
    "MonthEndForecast",
    "forecast_month_end",
    "previous_period",
    "RevenueLedger",
    "RevenueSummary",
    "project_revenue",
    "projected_revenue_of",
    "sum_by_shop",
    "sum_by_shop_and_date",
    "summarize_revenue",
]
