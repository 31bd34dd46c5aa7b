"""
Month-End Forecast

Estimates where a shop's month will end from its month-to-date reports:
1. like-for-like growth against the previous month up to the same day,
   applied to the previous month's full total;
2. otherwise a daily run-rate extrapolated to the length of the month;
3. otherwise the month-to-date total itself.

The forecast is informational. Classification uses the net projected
revenue from aggregation.revenue.
"""

import calendar
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from shop_performance.models import ComprehensiveReport


class ForecastMethod(str, Enum):
    LIKE_FOR_LIKE = "like_for_like"
    RUN_RATE = "run_rate"
    MONTH_TO_DATE = "month_to_date"


@dataclass(frozen=True)
class MonthEndForecast:
    month_to_date_revenue: float
    previous_month_revenue: float
    like_for_like_previous_month_revenue: float
    growth: float
    forecast_revenue: float
    method: ForecastMethod


def forecast_month_end(
    current: Iterable[ComprehensiveReport],
    previous: Iterable[ComprehensiveReport],
) -> MonthEndForecast:
    """
    Forecast a shop's month-end gross revenue.

    Args:
        current: The shop's daily reports in the month being forecast
        previous: The shop's daily reports in the previous month

    Returns:
        MonthEndForecast; growth is +inf when there is revenue now but none
        in the comparable previous period
    """
    current = list(current)
    previous = list(previous)

    month_to_date = float(sum(r.total_revenue or 0 for r in current))
    previous_total = float(sum(r.total_revenue or 0 for r in previous))
    last_date = max((r.report_date for r in current), default=None)

    like_for_like = 0.0
    if last_date is not None:
        like_for_like = float(sum(
            r.total_revenue or 0 for r in previous if r.report_date.day <= last_date.day
        ))

    if like_for_like > 0:
        growth = (month_to_date - like_for_like) / like_for_like
    elif month_to_date > 0:
        growth = math.inf
    else:
        growth = 0.0

    if previous_total > 0 and growth != 0 and math.isfinite(growth):
        forecast = previous_total * (1 + growth)
        method = ForecastMethod.LIKE_FOR_LIKE
    elif last_date is not None:
        days_in_month = calendar.monthrange(last_date.year, last_date.month)[1]
        forecast = month_to_date / last_date.day * days_in_month
        method = ForecastMethod.RUN_RATE
    else:
        forecast = month_to_date
        method = ForecastMethod.MONTH_TO_DATE

    return MonthEndForecast(
        month_to_date_revenue=month_to_date,
        previous_month_revenue=previous_total,
        like_for_like_previous_month_revenue=like_for_like,
        growth=growth,
        forecast_revenue=forecast,
        method=method,
    )


def previous_period(period: str) -> str:
    """Period before the given "YYYY-MM" period"""
    year, month = (int(part) for part in period.split("-"))
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"
