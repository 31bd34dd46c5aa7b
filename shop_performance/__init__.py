"""
Shop Performance Engine

Revenue classification and aggregation for marketplace shop reports.
"""

__version__ = "1.0.0"

from .classification import classify, classify_goals
from .models import ColorCategory, DashboardReport, ReportStatistics, ShopStatus
from .pipeline import ReportingPipeline

__all__ = [
    "classify",
    "classify_goals",
    "ColorCategory",
    "DashboardReport",
    "ReportStatistics",
    "ShopStatus",
    "ReportingPipeline",
]
