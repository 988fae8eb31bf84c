"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from antigua_payroll.calculators.types import EmployeeProfile, HourEntry, RateTable
from antigua_payroll.config import Settings
from antigua_payroll.models import (
    Base,
    Employee,
    EmployeeBankAccount,
    EmployeeLoan,
    PayrollSettings,
    TimeEntry,
)

# In-memory SQLite shared across connections through a static pool
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        max_workers=1,
        log_level="DEBUG",
        default_actor="tester",
    )


@pytest.fixture
def rates() -> RateTable:
    """Current statutory defaults."""
    return RateTable.antigua_defaults()


@pytest.fixture
def make_profile() -> Callable[..., EmployeeProfile]:
    """Factory for employee profiles with hourly defaults."""

    def _make(**overrides) -> EmployeeProfile:
        values = dict(
            employee_id="E1",
            name="Test Employee",
            classification="hourly",
            pay_frequency="Bi-Weekly",
            standard_hours=Decimal("40"),
            hourly_rate=Decimal("20.00"),
            date_of_birth=date(1990, 6, 1),
        )
        values.update(overrides)
        return EmployeeProfile(**values)

    return _make


def daily_entries(
    employee_id: str,
    start: date,
    days: int,
    hours: Decimal,
    time_in: time | None = None,
) -> list[HourEntry]:
    """One hour entry per consecutive day."""
    return [
        HourEntry(employee_id, start + timedelta(days=offset), hours, time_in)
        for offset in range(days)
    ]


# ===== Database helpers =====


@pytest.fixture
async def payroll_settings(session: AsyncSession) -> PayrollSettings:
    """Active default rate settings."""
    settings = PayrollSettings(effective_date=date(2024, 1, 1), is_active=True)
    session.add(settings)
    await session.flush()
    return settings


async def add_employee(session: AsyncSession, employee_id: str, **overrides) -> Employee:
    values = dict(
        employee_id=employee_id,
        first_name="Test",
        last_name=employee_id,
        classification="hourly",
        pay_frequency="Bi-Weekly",
        hourly_rate=Decimal("20.00"),
        standard_hours=Decimal("40"),
        date_of_birth=date(1990, 6, 1),
        status="active",
        city="St. John's",
        country="Antigua",
        bank_accounts=[
            EmployeeBankAccount(
                bank_name="Test Bank",
                account_type="Checking",
                account_number=f"ACC-{employee_id}",
                routing_number="011000015",
            )
        ],
    )
    values.update(overrides)
    employee = Employee(**values)
    session.add(employee)
    await session.flush()
    return employee


async def add_hours(
    session: AsyncSession,
    employee_id: str,
    start: date,
    days: int,
    hours: Decimal,
) -> None:
    session.add_all(
        [
            TimeEntry(
                employee_id=employee_id,
                work_date=start + timedelta(days=offset),
                hours=hours,
            )
            for offset in range(days)
        ]
    )
    await session.flush()


async def add_loan(session: AsyncSession, employee_id: str, **overrides) -> EmployeeLoan:
    values = dict(
        employee_id=employee_id,
        loan_type="internal",
        loan_amount=Decimal("300.00"),
        total_amount=Decimal("300.00"),
        remaining_balance=Decimal("300.00"),
        installment_amount=Decimal("200.00"),
        status="active",
        start_date=date(2023, 12, 1),
    )
    values.update(overrides)
    loan = EmployeeLoan(**values)
    session.add(loan)
    await session.flush()
    return loan
