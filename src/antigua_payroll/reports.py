"""Report builders consuming persisted payroll runs.

ACH export, statutory deductions summary and third-party loan payouts.
Rendering to files is left to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from antigua_payroll.calculators.types import ZERO, LoanType
from antigua_payroll.exceptions import RunNotFoundError
from antigua_payroll.models import EmployeeLoan, LoanPayment, PayrollItem, PayrollRun
from antigua_payroll.services.repository import PayrollRepository
from antigua_payroll.services.state_machine import PayrollRunStatus

REPORTABLE_STATUSES = (
    PayrollRunStatus.COMPLETED.value,
    PayrollRunStatus.COMPLETED_WITH_ERRORS.value,
    PayrollRunStatus.FINALIZED.value,
)

ACCOUNT_TYPE_CODES = {"Checking": "Ck", "Savings": "Sv"}


# ===== ACH =====


@dataclass
class AchRow:
    payroll_item_id: Any
    employee_id: str
    employee_name: str
    amount: Decimal
    has_banking_info: bool
    bank_name: str | None = None
    account_type: str | None = None
    account_number: str | None = None
    routing_number: str | None = None
    institute: str | None = None


@dataclass
class AchExport:
    """Direct-deposit rows; only rows with banking info count toward the total."""

    rows: list[AchRow] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount for r in self.rows if r.has_banking_info), ZERO)

    @property
    def total_transactions(self) -> int:
        return sum(1 for r in self.rows if r.has_banking_info)

    @property
    def missing_banking_info(self) -> list[str]:
        return [r.employee_id for r in self.rows if not r.has_banking_info]


def format_institute(city: str | None, country: str | None, bank_name: str | None) -> str | None:
    if city and country:
        return f"{city}, {country}"
    return city or country or bank_name


def build_ach_export(items: Iterable[Any], employees: dict[str, Any]) -> AchExport:
    """Build ACH rows for items with positive net pay.

    ``employees`` maps employee id to an object with ``primary_bank_account``,
    ``city`` and ``country``.
    """
    export = AchExport()
    for item in sorted(items, key=lambda i: (i.employee_name, i.employee_id)):
        if item.net_pay <= 0:
            continue
        employee = employees.get(item.employee_id)
        account = employee.primary_bank_account if employee is not None else None

        if account is None or not (account.account_number and account.routing_number):
            export.rows.append(
                AchRow(
                    payroll_item_id=item.payroll_item_id,
                    employee_id=item.employee_id,
                    employee_name=item.employee_name,
                    amount=item.net_pay,
                    has_banking_info=False,
                )
            )
            continue

        export.rows.append(
            AchRow(
                payroll_item_id=item.payroll_item_id,
                employee_id=item.employee_id,
                employee_name=item.employee_name,
                amount=item.net_pay,
                has_banking_info=True,
                bank_name=account.bank_name,
                account_type=ACCOUNT_TYPE_CODES.get(account.account_type, account.account_type),
                account_number=account.account_number,
                routing_number=account.routing_number,
                institute=format_institute(employee.city, employee.country, account.bank_name),
            )
        )
    return export


# ===== Statutory deductions =====

DEDUCTION_FIELDS = (
    "gross_pay",
    "net_pay",
    "ss_employee",
    "ss_employer",
    "mb_employee",
    "mb_employer",
    "education_levy",
)


@dataclass
class DeductionsRow:
    employee_id: str
    employee_name: str
    totals: dict[str, Decimal]


@dataclass
class DeductionsReport:
    rows: list[DeductionsRow] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, Decimal]:
        return {
            name: sum((row.totals[name] for row in self.rows), ZERO)
            for name in DEDUCTION_FIELDS
        }


def build_deductions_report(items: Iterable[Any]) -> DeductionsReport:
    """Sum statutory amounts per employee across the given items."""
    by_employee: dict[str, DeductionsRow] = {}
    for item in items:
        row = by_employee.get(item.employee_id)
        if row is None:
            row = DeductionsRow(
                employee_id=item.employee_id,
                employee_name=item.employee_name,
                totals={name: ZERO for name in DEDUCTION_FIELDS},
            )
            by_employee[item.employee_id] = row
        for name in DEDUCTION_FIELDS:
            row.totals[name] += getattr(item, name)
    return DeductionsReport(
        rows=sorted(by_employee.values(), key=lambda r: (r.employee_name, r.employee_id))
    )


# ===== Third-party loan payouts =====


@dataclass
class ThirdPartyPayout:
    payee_name: str
    account: str | None
    routing: str | None
    amount: Decimal = ZERO
    references: list[str] = field(default_factory=list)


def group_third_party_payouts(payments: Iterable[tuple[Any, Any]]) -> list[ThirdPartyPayout]:
    """Group (loan, payment) pairs of third-party loans by payee."""
    grouped: dict[tuple[str, str | None, str | None], ThirdPartyPayout] = {}
    for loan, payment in payments:
        if loan.loan_type != LoanType.THIRD_PARTY.value:
            continue
        key = (loan.third_party_name or "Unknown payee", loan.third_party_account, loan.third_party_routing)
        payout = grouped.get(key)
        if payout is None:
            payout = ThirdPartyPayout(payee_name=key[0], account=key[1], routing=key[2])
            grouped[key] = payout
        payout.amount += payment.amount
        if loan.third_party_reference:
            payout.references.append(loan.third_party_reference)
    return sorted(grouped.values(), key=lambda p: p.payee_name)


class ReportService:
    """Loads persisted runs and builds reports from them."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = PayrollRepository(session)

    async def _get_reportable_run(self, run_id: UUID) -> PayrollRun:
        run = await self.repository.get_run(run_id)
        if run is None or run.status not in REPORTABLE_STATUSES:
            raise RunNotFoundError(run_id)
        return run

    async def ach_export(self, run_id: UUID) -> AchExport:
        run = await self._get_reportable_run(run_id)
        employees = await self.repository.get_employees(i.employee_id for i in run.items)
        return build_ach_export(run.items, employees)

    async def deductions_report(
        self, start: date | None = None, end: date | None = None
    ) -> DeductionsReport:
        """Statutory totals per employee over runs paid between start and end."""
        query = (
            select(PayrollItem)
            .join(PayrollRun, PayrollItem.payroll_run_id == PayrollRun.payroll_run_id)
            .where(PayrollRun.status.in_(REPORTABLE_STATUSES))
        )
        if start is not None:
            query = query.where(PayrollRun.pay_date >= start)
        if end is not None:
            query = query.where(PayrollRun.pay_date <= end)
        result = await self.session.execute(query)
        return build_deductions_report(result.scalars().all())

    async def third_party_payouts(self, run_id: UUID) -> list[ThirdPartyPayout]:
        run = await self._get_reportable_run(run_id)
        item_ids = [i.payroll_item_id for i in run.items]
        if not item_ids:
            return []
        result = await self.session.execute(
            select(EmployeeLoan, LoanPayment)
            .join(LoanPayment, LoanPayment.loan_id == EmployeeLoan.loan_id)
            .where(
                LoanPayment.payroll_item_id.in_(item_ids),
                EmployeeLoan.loan_type == LoanType.THIRD_PARTY.value,
            )
        )
        return group_third_party_payouts(result.tuples().all())
