"""
Report Store Tables

Natural keys mirror the upload semantics:
- daily_reports: one row per (shop_id, report_date)
- shop_revenue: one row per (shop_id, period)
- shop_goals: one row per (shop_id, period)

Re-uploading a key updates the row in place (see repository.upsert_*).
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all report store tables"""
    pass


class DailyReportRecord(Base):
    """Normalized daily report row (ComprehensiveReport)"""
    __tablename__ = "daily_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False, default="shopee")

    # Money
    total_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    cancelled_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    returned_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    platform_subsidized_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    refund_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    average_order_value: Mapped[float] = mapped_column(Float, default=0)

    # Counts
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    cancelled_orders: Mapped[int] = mapped_column(Integer, default=0)
    returned_orders: Mapped[int] = mapped_column(Integer, default=0)
    sku_orders: Mapped[int] = mapped_column(Integer, default=0)
    items_sold: Mapped[int] = mapped_column(Integer, default=0)
    product_clicks: Mapped[int] = mapped_column(Integer, default=0)
    total_visits: Mapped[int] = mapped_column(Integer, default=0)
    store_visits: Mapped[int] = mapped_column(Integer, default=0)
    total_buyers: Mapped[int] = mapped_column(Integer, default=0)
    new_buyers: Mapped[int] = mapped_column(Integer, default=0)
    existing_buyers: Mapped[int] = mapped_column(Integer, default=0)
    potential_buyers: Mapped[int] = mapped_column(Integer, default=0)

    # Rates
    conversion_rate: Mapped[float] = mapped_column(Float, default=0)
    buyer_return_rate: Mapped[float] = mapped_column(Float, default=0)

    feasible_goal: Mapped[Optional[float]] = mapped_column(Float)
    breakthrough_goal: Mapped[Optional[float]] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("shop_id", "report_date", name="uq_daily_reports_shop_date"),
        Index("ix_daily_reports_report_date", "report_date"),
    )


class ShopRevenueRecord(Base):
    """Monthly revenue row (ShopPeriodRevenue)"""
    __tablename__ = "shop_revenue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    total_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    cancelled_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    returned_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    platform_subsidized_revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("shop_id", "period", name="uq_shop_revenue_shop_period"),
    )


class ShopGoalRecord(Base):
    """Goals per shop per month (GoalThresholds)"""
    __tablename__ = "shop_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    feasible_goal: Mapped[Optional[float]] = mapped_column(Float)
    breakthrough_goal: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (
        UniqueConstraint("shop_id", "period", name="uq_shop_goals_shop_period"),
    )
