"""Seed data: default statutory rates, public holidays and demo employees."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from antigua_payroll.models import (
    Employee,
    EmployeeBankAccount,
    PayrollSettings,
    PublicHoliday,
)

logger = logging.getLogger(__name__)

# Fixed-date public holidays; moveable feasts are entered per year.
FIXED_HOLIDAYS = [
    (1, 1, "New Year's Day"),
    (5, 1, "Labour Day"),
    (8, 1, "Emancipation Day"),
    (11, 1, "Independence Day"),
    (12, 9, "V.C. Bird Day"),
    (12, 25, "Christmas Day"),
    (12, 26, "Boxing Day"),
]


async def seed_settings(session: AsyncSession, effective_date: date | None = None) -> PayrollSettings:
    """Create the default rate settings unless an active row exists."""
    result = await session.execute(
        select(PayrollSettings).where(PayrollSettings.is_active.is_(True)).limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        logger.info("Active payroll settings already exist, skipping")
        return existing

    settings = PayrollSettings(effective_date=effective_date or date(date.today().year, 1, 1))
    session.add(settings)
    await session.flush()
    logger.info("Created default payroll settings effective %s", settings.effective_date)
    return settings


async def seed_holidays(session: AsyncSession, year: int) -> int:
    """Insert the fixed-date holidays for ``year``; returns how many were added."""
    result = await session.execute(
        select(PublicHoliday.holiday_date).where(
            PublicHoliday.holiday_date >= date(year, 1, 1),
            PublicHoliday.holiday_date <= date(year, 12, 31),
        )
    )
    existing = set(result.scalars().all())

    added = 0
    for month, day, name in FIXED_HOLIDAYS:
        holiday_date = date(year, month, day)
        if holiday_date in existing:
            continue
        session.add(PublicHoliday(holiday_date=holiday_date, name=name))
        added += 1
    await session.flush()
    logger.info("Added %d public holidays for %d", added, year)
    return added


async def seed_demo_employees(session: AsyncSession) -> list[Employee]:
    """One employee per classification, for trying out a run."""
    demo = [
        Employee(
            employee_id="EMP-001",
            first_name="Avery",
            last_name="Joseph",
            classification="salary",
            pay_frequency="Monthly",
            salary_amount=Decimal("6000.00"),
            standard_hours=Decimal("40"),
            date_of_birth=date(1985, 3, 14),
            city="St. John's",
            country="Antigua",
        ),
        Employee(
            employee_id="EMP-002",
            first_name="Jordan",
            last_name="Henry",
            classification="hourly",
            pay_frequency="Bi-Weekly",
            hourly_rate=Decimal("22.50"),
            standard_hours=Decimal("40"),
            date_of_birth=date(1992, 7, 2),
            city="All Saints",
            country="Antigua",
        ),
        Employee(
            employee_id="EMP-003",
            first_name="Morgan",
            last_name="Francis",
            classification="private_duty_nurse",
            pay_frequency="Semi-Monthly",
            standard_hours=Decimal("40"),
            date_of_birth=date(1963, 11, 20),
            city="Codrington",
            country="Barbuda",
        ),
        Employee(
            employee_id="EMP-004",
            first_name="Riley",
            last_name="Samuel",
            classification="supervisor",
            pay_frequency="Monthly",
            salary_amount=Decimal("8500.00"),
            standard_hours=Decimal("40"),
            date_of_birth=date(1979, 1, 5),
        ),
    ]

    created = []
    for employee in demo:
        if await session.get(Employee, employee.employee_id) is not None:
            continue
        employee.bank_accounts = [
            EmployeeBankAccount(
                bank_name="Eastern Caribbean Amalgamated Bank",
                account_type="Checking",
                account_number=f"10{employee.employee_id[-3:]}7788",
                routing_number="011000015",
            )
        ]
        session.add(employee)
        created.append(employee)
    await session.flush()
    logger.info("Created %d demo employees", len(created))
    return created
