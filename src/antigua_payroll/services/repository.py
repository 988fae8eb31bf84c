"""Bounded reads of everything a payroll run consumes."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from antigua_payroll.calculators.types import (
    EmployeeInputs,
    EmployeeProfile,
    Holiday,
    HourEntry,
    LoanSnapshot,
    PayPeriod,
    RateTable,
    SpecialPayEntry,
    SpecialPayKind,
)
from antigua_payroll.exceptions import ConfigurationError
from antigua_payroll.models import (
    Employee,
    EmployeeLoan,
    LeaveEntry,
    PayrollRun,
    PayrollSettings,
    PublicHoliday,
    TimeEntry,
    VacationEntry,
    YTDSummary,
)
from antigua_payroll.services.state_machine import PayrollRunStateMachine


class PayrollRepository:
    """Loads run inputs and run state.

    Each run reads its inputs once: active employees, their hour entries,
    approved time off, loans with an outstanding balance and the active
    rate settings.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # === Rates ===

    async def get_active_settings(self) -> PayrollSettings | None:
        result = await self.session.execute(
            select(PayrollSettings)
            .where(PayrollSettings.is_active.is_(True))
            .order_by(PayrollSettings.effective_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def load_rate_table(self) -> RateTable:
        """Snapshot the active settings, raising ConfigurationError when none exist."""
        settings = await self.get_active_settings()
        if settings is None:
            raise ConfigurationError("No active payroll settings found")
        return RateTable.from_settings(settings)

    # === Employees and inputs ===

    async def load_employee_inputs(self, period: PayPeriod) -> list[EmployeeInputs]:
        result = await self.session.execute(
            select(Employee).where(Employee.status == "active").order_by(Employee.employee_id)
        )
        employees = list(result.scalars().all())
        if not employees:
            return []
        employee_ids = [e.employee_id for e in employees]

        hours = await self._get_time_entries(employee_ids, period)
        special = await self._get_special_entries(employee_ids, period)
        loans = await self._get_loans(employee_ids)

        return [
            EmployeeInputs(
                profile=self.to_profile(employee),
                hour_entries=hours.get(employee.employee_id, []),
                special_entries=special.get(employee.employee_id, []),
                loans=loans.get(employee.employee_id, []),
            )
            for employee in employees
        ]

    async def get_employee(self, employee_id: str) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def get_employees(self, employee_ids: Iterable[str]) -> dict[str, Employee]:
        result = await self.session.execute(
            select(Employee)
            .where(Employee.employee_id.in_(list(employee_ids)))
            .options(selectinload(Employee.bank_accounts))
        )
        return {e.employee_id: e for e in result.scalars().all()}

    async def load_holidays(self, period: PayPeriod) -> list[Holiday]:
        result = await self.session.execute(
            select(PublicHoliday)
            .where(
                PublicHoliday.holiday_date >= period.start,
                PublicHoliday.holiday_date <= period.end,
            )
            .order_by(PublicHoliday.holiday_date)
        )
        return [Holiday(h.holiday_date, h.name) for h in result.scalars().all()]

    @staticmethod
    def to_profile(employee: Employee) -> EmployeeProfile:
        return EmployeeProfile(
            employee_id=employee.employee_id,
            name=employee.full_name,
            classification=employee.classification,
            pay_frequency=employee.pay_frequency,
            standard_hours=employee.standard_hours,
            salary_amount=employee.salary_amount,
            hourly_rate=employee.hourly_rate,
            is_exempt_ss=employee.is_exempt_ss,
            is_exempt_medical=employee.is_exempt_medical,
            date_of_birth=employee.date_of_birth,
            status=employee.status,
        )

    async def _get_time_entries(
        self, employee_ids: list[str], period: PayPeriod
    ) -> dict[str, list[HourEntry]]:
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.employee_id.in_(employee_ids),
                TimeEntry.work_date >= period.start,
                TimeEntry.work_date <= period.end,
            )
            .order_by(TimeEntry.employee_id, TimeEntry.work_date, TimeEntry.time_in)
        )
        grouped: dict[str, list[HourEntry]] = defaultdict(list)
        for entry in result.scalars().all():
            grouped[entry.employee_id].append(
                HourEntry(
                    employee_id=entry.employee_id,
                    work_date=entry.work_date,
                    hours=entry.hours,
                    time_in=entry.time_in,
                    is_lunch=entry.is_lunch,
                )
            )
        return grouped

    async def _get_special_entries(
        self, employee_ids: list[str], period: PayPeriod
    ) -> dict[str, list[SpecialPayEntry]]:
        grouped: dict[str, list[SpecialPayEntry]] = defaultdict(list)

        vacations = await self.session.execute(
            select(VacationEntry).where(
                VacationEntry.employee_id.in_(employee_ids),
                VacationEntry.status == "approved",
                VacationEntry.start_date <= period.end,
                VacationEntry.end_date >= period.start,
            )
        )
        for v in vacations.scalars().all():
            grouped[v.employee_id].append(
                SpecialPayEntry(
                    kind=SpecialPayKind.VACATION,
                    start_date=v.start_date,
                    end_date=v.end_date,
                    total_hours=v.total_hours,
                    hourly_rate=v.hourly_rate,
                    status=v.status,
                    entry_id=str(v.vacation_id),
                )
            )

        leaves = await self.session.execute(
            select(LeaveEntry).where(
                LeaveEntry.employee_id.in_(employee_ids),
                LeaveEntry.status == "approved",
                LeaveEntry.start_date <= period.end,
                LeaveEntry.end_date >= period.start,
            )
        )
        for lv in leaves.scalars().all():
            grouped[lv.employee_id].append(
                SpecialPayEntry(
                    kind=SpecialPayKind.LEAVE,
                    start_date=lv.start_date,
                    end_date=lv.end_date,
                    total_hours=lv.total_hours,
                    hourly_rate=lv.hourly_rate,
                    status=lv.status,
                    leave_type=lv.leave_type,
                    payment_percentage=lv.payment_percentage,
                    entry_id=str(lv.leave_id),
                )
            )
        return grouped

    async def _get_loans(self, employee_ids: list[str]) -> dict[str, list[LoanSnapshot]]:
        result = await self.session.execute(
            select(EmployeeLoan).where(
                EmployeeLoan.employee_id.in_(employee_ids),
                EmployeeLoan.remaining_balance > 0,
            )
        )
        grouped: dict[str, list[LoanSnapshot]] = defaultdict(list)
        for loan in result.scalars().all():
            grouped[loan.employee_id].append(
                LoanSnapshot(
                    loan_id=loan.loan_id,
                    employee_id=loan.employee_id,
                    loan_amount=loan.loan_amount,
                    total_amount=loan.total_amount,
                    remaining_balance=loan.remaining_balance,
                    installment_amount=loan.installment_amount,
                    loan_type=loan.loan_type,
                    status=loan.status,
                    start_date=loan.start_date,
                    third_party_name=loan.third_party_name,
                    third_party_account=loan.third_party_account,
                    third_party_routing=loan.third_party_routing,
                    third_party_reference=loan.third_party_reference,
                )
            )
        return grouped

    # === Runs ===

    async def find_blocking_run(self, period: PayPeriod) -> PayrollRun | None:
        """A run for exactly this period that forbids a new submission."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.period_start == period.start,
                PayrollRun.period_end == period.end,
                PayrollRun.status.in_([s.value for s in PayrollRunStateMachine.BLOCKS_DUPLICATE]),
            )
        )
        return result.scalars().first()

    async def get_run(
        self, run_id: UUID, load_items: bool = True, for_update: bool = False
    ) -> PayrollRun | None:
        options = [selectinload(PayrollRun.items)] if load_items else []
        stmt = select(PayrollRun).where(PayrollRun.payroll_run_id == run_id).options(*options)
        if for_update:
            stmt = stmt.with_for_update(of=PayrollRun).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_runs(self, limit: int = 20) -> list[PayrollRun]:
        result = await self.session.execute(
            select(PayrollRun).order_by(PayrollRun.period_start.desc()).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    def ytd_summaries_query(employee_ids: Iterable[str], year: int) -> Select:
        """Summaries for one year, row-locked until the transaction ends."""
        return (
            select(YTDSummary)
            .where(
                YTDSummary.employee_id.in_(list(employee_ids)),
                YTDSummary.year == year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def get_ytd_summaries(
        self, employee_ids: Iterable[str], year: int
    ) -> dict[str, YTDSummary]:
        result = await self.session.execute(self.ytd_summaries_query(employee_ids, year))
        return {s.employee_id: s for s in result.scalars().all()}
