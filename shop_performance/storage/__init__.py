"""
Report Store Module
"""
from .connection import close_database, get_db, get_engine, init_database
from .models import Base, DailyReportRecord, ShopGoalRecord, ShopRevenueRecord
from .repository import ReportRepository

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_engine",
    "Base",
    "DailyReportRecord",
    "ShopGoalRecord",
    "ShopRevenueRecord",
    "ReportRepository",
]
