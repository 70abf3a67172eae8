"""Pytest fixtures for nomina engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from nomina_engine.calculators.types import (
    EmployeeInput,
    PeriodInput,
    PeriodType,
    PrenominaInput,
    TaxBracket,
    TaxTable,
)
from nomina_engine.models import Base, Employee, PayrollPeriod, PrenominaMetric
from nomina_engine.tax_config import StaticTaxConfigProvider

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

UMA_2025 = Decimal("113.14")


def brackets(*rows: tuple[str, str, str]) -> tuple[TaxBracket, ...]:
    return tuple(
        TaxBracket(Decimal(lower), Decimal(fee), Decimal(rate)) for lower, fee, rate in rows
    )


# Simplified biweekly ISR table with the 6224.69 / 353.22 / 10.88% row
TEST_BIWEEKLY_ISR = brackets(
    ("0.01", "0", "0.0192"),
    ("2000.00", "38.40", "0.0640"),
    ("6224.69", "353.22", "0.1088"),
    ("13000.00", "1096.04", "0.1600"),
    ("25000.00", "3016.04", "0.2136"),
)

TEST_WEEKLY_ISR = brackets(
    ("0.01", "0", "0.0192"),
    ("171.79", "3.29", "0.0640"),
    ("1458.04", "85.61", "0.1088"),
    ("2562.36", "205.80", "0.1600"),
)

TEST_WEEKLY_SUBSIDY = brackets(
    ("0.01", "109.29", "0"),
    ("2342.01", "0", "0"),
)


def make_table(
    period_type: PeriodType = PeriodType.BIWEEKLY,
    isr: tuple[TaxBracket, ...] = TEST_BIWEEKLY_ISR,
    subsidy: tuple[TaxBracket, ...] = (),
    fiscal_year: int = 2025,
    **kwargs,
) -> TaxTable:
    return TaxTable(
        fiscal_year=fiscal_year,
        period_type=period_type,
        isr_brackets=isr,
        subsidy_brackets=subsidy,
        uma_daily_value=kwargs.pop("uma_daily_value", UMA_2025),
        **kwargs,
    )


@pytest.fixture
def biweekly_table() -> TaxTable:
    """Biweekly 2025 table without employment subsidy."""
    return make_table()


@pytest.fixture
def weekly_table() -> TaxTable:
    return make_table(PeriodType.WEEKLY, TEST_WEEKLY_ISR, TEST_WEEKLY_SUBSIDY)


@pytest.fixture
def tax_provider(biweekly_table: TaxTable, weekly_table: TaxTable) -> StaticTaxConfigProvider:
    return StaticTaxConfigProvider([biweekly_table, weekly_table])


# =============================================================================
# Engine inputs
# =============================================================================


@pytest.fixture
def employee_input() -> EmployeeInput:
    """Active biweekly employee earning 800/day with a stored SDI."""
    return EmployeeInput(
        employee_id=uuid4(),
        daily_salary=Decimal("800.00"),
        hire_date=date(2020, 1, 1),
        integrated_daily_salary=Decimal("843.84"),
    )


@pytest.fixture
def period_input() -> PeriodInput:
    return PeriodInput(
        period_id=uuid4(),
        period_code="2025-BW01",
        frequency=PeriodType.BIWEEKLY,
        year=2025,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 15),
    )


@pytest.fixture
def prenomina_input() -> PrenominaInput:
    return PrenominaInput(
        worked_days=Decimal("15"),
        regular_hours=Decimal("120"),
        overtime_regular_hours=Decimal("5"),
    )


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine (fresh in-memory database per test)."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_employee(session: AsyncSession):
    """Factory creating persisted employees."""
    counter = {"n": 0}

    async def factory(**overrides) -> Employee:
        counter["n"] += 1
        values = {
            "employee_id": uuid4(),
            "employee_number": f"EMP{counter['n']:04d}",
            "first_name": "Empleado",
            "last_name": f"Prueba {counter['n']}",
            "collar_type": "white_collar",
            "daily_salary": Decimal("800.00"),
            "integrated_daily_salary": Decimal("843.84"),
            "hire_date": date(2020, 1, 1),
            "pay_frequency": "biweekly",
            "employment_status": "active",
        }
        values.update(overrides)
        employee = Employee(**values)
        session.add(employee)
        await session.flush()
        return employee

    return factory


@pytest.fixture
def make_period(session: AsyncSession):
    """Factory creating persisted payroll periods."""

    async def factory(**overrides) -> PayrollPeriod:
        values = {
            "payroll_period_id": uuid4(),
            "year": 2025,
            "period_number": 1,
            "frequency": "biweekly",
            "start_date": date(2025, 1, 1),
            "end_date": date(2025, 1, 15),
            "payment_date": date(2025, 1, 15),
            "status": "open",
        }
        values.update(overrides)
        values.setdefault(
            "period_code",
            PayrollPeriod.build_code(values["year"], values["frequency"], values["period_number"]),
        )
        period = PayrollPeriod(**values)
        session.add(period)
        await session.flush()
        return period

    return factory


@pytest.fixture
def make_prenomina(session: AsyncSession):
    """Factory creating persisted prenomina metrics."""

    async def factory(employee: Employee, period: PayrollPeriod, **overrides) -> PrenominaMetric:
        values = {
            "prenomina_metric_id": uuid4(),
            "employee_id": employee.employee_id,
            "payroll_period_id": period.payroll_period_id,
            "worked_days": Decimal("15"),
            "regular_hours": Decimal("120"),
            "overtime_hours": Decimal("5"),
        }
        values.update(overrides)
        metric = PrenominaMetric(**values)
        session.add(metric)
        await session.flush()
        return metric

    return factory


@pytest_asyncio.fixture
async def open_period(make_period) -> PayrollPeriod:
    return await make_period()
