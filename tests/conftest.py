"""
Test Suite Configuration
"""
from datetime import date
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shop_performance.config import Settings, get_settings
from shop_performance.models import (
    ComprehensiveReport,
    Employee,
    GoalThresholds,
    Shop,
    ShopPerformance,
    UploadRow,
)
from shop_performance.storage.models import Base


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings read from the environment per test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with all tables created"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session on the test engine"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def shopee_headers() -> List[str]:
    return [
        "Ngày",
        "Tổng doanh số (VND)",
        "Tổng số đơn hàng",
        "Doanh số đơn hủy",
        "Doanh số các đơn Trả hàng/Hoàn tiền",
        "Tỷ lệ chuyển đổi đơn hàng",
    ]


@pytest.fixture
def shopee_rows() -> List[UploadRow]:
    """Three days of a Shopee export, already split into cells"""
    def row(number: int, day: str, total, orders, cancelled, returned, rate) -> UploadRow:
        return UploadRow(
            row_number=number,
            cells={
                "Ngày": day,
                "Tổng doanh số (VND)": total,
                "Tổng số đơn hàng": orders,
                "Doanh số đơn hủy": cancelled,
                "Doanh số các đơn Trả hàng/Hoàn tiền": returned,
                "Tỷ lệ chuyển đổi đơn hàng": rate,
            },
        )

    return [
        row(5, "01-09-2025", "1,500,000", "12", "100,000", "0", "6.5%"),
        row(6, "02-09-2025", 2000000, 15, 0, "50,000", "7%"),
        row(7, "03-09-2025", "N/A", "n/a", None, "", "5%"),
    ]


@pytest.fixture
def employees() -> Dict[str, Employee]:
    """Two leaders, three personnel (one without a manager)"""
    people = [
        Employee(id="lead-1", name="Lan"),
        Employee(id="lead-2", name="Minh"),
        Employee(id="emp-1", name="An", manager_id="lead-1"),
        Employee(id="emp-2", name="Binh", manager_id="lead-1"),
        Employee(id="emp-3", name="Chi", manager_id=None),
    ]
    return {e.id: e for e in people}


@pytest.fixture
def shops() -> List[Shop]:
    return [
        Shop(id="shop-1", name="Alpha", status="Đang Vận Hành", personnel_id="emp-1"),
        Shop(id="shop-2", name="Beta", status="Shop mới", personnel_id="emp-2"),
        Shop(id="shop-3", name="Gamma", status="Đã Dừng", personnel_id="emp-3"),
        Shop(id="shop-4", name="Delta", status=None, personnel_id=None),
    ]


@pytest.fixture
def goals() -> Dict[str, GoalThresholds]:
    return {
        "shop-1": GoalThresholds("shop-1", "2025-09", feasible_goal=100, breakthrough_goal=200),
        "shop-2": GoalThresholds("shop-2", "2025-09", feasible_goal=100, breakthrough_goal=200),
        "shop-3": GoalThresholds("shop-3", "2025-09", feasible_goal=100, breakthrough_goal=200),
    }


def make_report(shop_id: str, day: date, total: int, cancelled: int = 0, returned: int = 0, **extra) -> ComprehensiveReport:
    return ComprehensiveReport(
        shop_id=shop_id,
        report_date=day,
        total_revenue=total,
        cancelled_revenue=cancelled,
        returned_revenue=returned,
        **extra,
    )


def make_performance(shop_id: str, category, **extra) -> ShopPerformance:
    values = {"shop_id": shop_id, "shop_name": extra.pop("shop_name", shop_id), "category": category}
    values.update(extra)
    return ShopPerformance(**values)


@pytest.fixture
def report_factory():
    return make_report


@pytest.fixture
def performance_factory():
    return make_performance
