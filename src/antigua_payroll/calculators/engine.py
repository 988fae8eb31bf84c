"""Payroll calculation engine: the per-employee gross-to-net pipeline."""

from __future__ import annotations

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from functools import partial
from typing import Any, Iterable
from uuid import UUID

from antigua_payroll.calculators.deductions import DeductionEngine, calculate_age
from antigua_payroll.calculators.loans import LoanAmortizer, LoanLedgerUpdate, LoanSkip
from antigua_payroll.calculators.pay_computer import PayComputer
from antigua_payroll.calculators.special_pay import SpecialPayResolver
from antigua_payroll.calculators.types import (
    ZERO,
    EmployeeInputs,
    Holiday,
    PayPeriod,
    RateTable,
)
from antigua_payroll.exceptions import EmployeeComputationError, NegativeAmountError

logger = logging.getLogger(__name__)

# Result fields persisted on PayrollItem under the same name
ITEM_FIELDS: tuple[str, ...] = (
    "employee_id",
    "employee_name",
    "classification",
    "pay_frequency",
    "calculation_id",
    "worked_hours",
    "regular_hours",
    "overtime_hours",
    "vacation_hours",
    "leave_hours",
    "holiday_hours",
    "lunch_hours",
    "base_pay",
    "regular_pay",
    "overtime_pay",
    "vacation_amount",
    "leave_amount",
    "leave_type",
    "holiday_amount",
    "gross_pay",
    "ss_employee",
    "ss_employer",
    "mb_employee",
    "mb_employer",
    "education_levy",
    "loan_deduction",
    "internal_loan_deduction",
    "third_party_loan_deduction",
    "net_pay",
    "is_override",
    "override_gross",
    "override_net",
    "override_reason",
    "override_by",
    "override_at",
    "original_gross",
    "original_net",
    "warnings",
)


@dataclass
class EmployeePayResult:
    """Computed pay for one employee, before persistence."""

    employee_id: str
    employee_name: str
    classification: str
    pay_frequency: str
    calculation_id: UUID

    worked_hours: Decimal = ZERO
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    vacation_hours: Decimal = ZERO
    leave_hours: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    lunch_hours: Decimal = ZERO

    base_pay: Decimal = ZERO
    regular_pay: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    vacation_amount: Decimal = ZERO
    leave_amount: Decimal = ZERO
    leave_type: str | None = None
    holiday_amount: Decimal = ZERO
    gross_pay: Decimal = ZERO

    ss_employee: Decimal = ZERO
    ss_employer: Decimal = ZERO
    mb_employee: Decimal = ZERO
    mb_employer: Decimal = ZERO
    education_levy: Decimal = ZERO

    loan_deduction: Decimal = ZERO
    internal_loan_deduction: Decimal = ZERO
    third_party_loan_deduction: Decimal = ZERO
    net_pay: Decimal = ZERO

    is_override: bool = False
    override_gross: Decimal | None = None
    override_net: Decimal | None = None
    override_reason: str | None = None
    override_by: str | None = None
    override_at: datetime | None = None
    original_gross: Decimal | None = None
    original_net: Decimal | None = None

    loan_updates: list[LoanLedgerUpdate] = field(default_factory=list)
    loan_skips: list[LoanSkip] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def statutory_employee_total(self) -> Decimal:
        return self.ss_employee + self.mb_employee + self.education_levy

    def item_values(self) -> dict[str, Any]:
        """Column values for the PayrollItem row."""
        values = {name: getattr(self, name) for name in ITEM_FIELDS}
        values["warnings"] = list(self.warnings)
        return values


@dataclass
class EmployeeFailure:
    """An employee excluded from the run and why."""

    employee_id: str
    reason: str
    error_type: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class RunCalculationResult:
    """Results for every employee of a run, in employee-id order."""

    results: list[EmployeePayResult]
    failures: list[EmployeeFailure]

    @property
    def total_gross(self) -> Decimal:
        return sum((r.gross_pay for r in self.results), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((r.net_pay for r in self.results), ZERO)


class PayrollEngine:
    """Gross-to-net computation for one run's employees.

    The engine holds no session and reads no global state: everything comes
    from its RateTable and the inputs passed in, so results are reproducible.

    Calculation pipeline (stable order per employee):
    1) Validate the employee profile
    2) Resolve approved vacation, leave and holiday pay
    3) Compute base pay with the classification's strategy
    4) Statutory deductions on gross
    5) Loan installments
    6) Net pay, which must not be negative
    """

    def __init__(self, rates: RateTable, engine_version: str = "1.0.0"):
        self.rates = rates
        self.engine_version = engine_version
        self.pay_computer = PayComputer(rates)
        self.special_pay = SpecialPayResolver(rates)
        self.deductions = DeductionEngine(rates)
        self.loans = LoanAmortizer()
        self._rates_fingerprint = rates.fingerprint()

    def calculate_all(
        self,
        employees: Iterable[EmployeeInputs],
        period: PayPeriod,
        pay_date: date,
        holidays: Iterable[Holiday] = (),
        max_workers: int = 1,
    ) -> RunCalculationResult:
        """Calculate every employee, collecting failures instead of raising.

        With ``max_workers`` above one the employees are spread over a thread
        pool; results are joined back in employee-id order.
        """
        ordered = sorted(employees, key=lambda i: i.profile.employee_id)
        holidays = list(holidays)
        calculate = partial(self._calculate_safely, period=period, pay_date=pay_date, holidays=holidays)

        if max_workers > 1 and len(ordered) > 1:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="payroll") as executor:
                outcomes = list(executor.map(calculate, ordered))
        else:
            outcomes = [calculate(inputs) for inputs in ordered]

        return RunCalculationResult(
            results=[o for o in outcomes if isinstance(o, EmployeePayResult)],
            failures=[o for o in outcomes if isinstance(o, EmployeeFailure)],
        )

    def calculate_employee(
        self,
        inputs: EmployeeInputs,
        period: PayPeriod,
        pay_date: date,
        holidays: Iterable[Holiday] = (),
    ) -> EmployeePayResult:
        """Calculate pay for a single employee, raising EmployeeComputationError on failure."""
        profile = inputs.profile
        profile.validate()
        frequency = profile.frequency
        strategy = self.pay_computer.strategy_for(profile)

        special = self.special_pay.resolve(
            profile, period, inputs.special_entries, holidays, strategy
        )
        base = self.pay_computer.compute(
            profile, period, inputs.hour_entries, special.credited_hours
        )
        gross = base.base_pay + special.payable_amount

        statutory = self.deductions.calculate(
            gross,
            frequency,
            calculate_age(profile.date_of_birth, pay_date),
            profile.is_exempt_ss,
            profile.is_exempt_medical,
        )
        loans = self.loans.compute(inputs.loans, pay_date)

        net = gross - statutory.total_employee - loans.total
        if net < 0:
            raise NegativeAmountError(profile.employee_id, "net pay", net)

        return EmployeePayResult(
            employee_id=profile.employee_id,
            employee_name=profile.name,
            classification=strategy.classification.value,
            pay_frequency=frequency.value,
            calculation_id=self._generate_calculation_id(
                period, pay_date, profile.employee_id, self._compute_inputs_fingerprint(inputs)
            ),
            worked_hours=base.worked_hours,
            regular_hours=base.regular_hours,
            overtime_hours=base.overtime_hours,
            vacation_hours=special.vacation_hours,
            leave_hours=special.leave_hours,
            holiday_hours=special.holiday_hours,
            lunch_hours=base.lunch_hours,
            base_pay=base.base_pay,
            regular_pay=base.regular_pay,
            overtime_pay=base.overtime_pay,
            vacation_amount=special.vacation_amount,
            leave_amount=special.leave_amount,
            leave_type=special.leave_type,
            holiday_amount=special.holiday_amount,
            gross_pay=gross,
            ss_employee=statutory.ss_employee,
            ss_employer=statutory.ss_employer,
            mb_employee=statutory.mb_employee,
            mb_employer=statutory.mb_employer,
            education_levy=statutory.education_levy,
            loan_deduction=loans.total,
            internal_loan_deduction=loans.internal,
            third_party_loan_deduction=loans.third_party,
            net_pay=net,
            loan_updates=loans.updates,
            loan_skips=loans.skipped,
            warnings=base.notes + special.warnings + [s.reason for s in loans.skipped],
        )

    def _calculate_safely(
        self,
        inputs: EmployeeInputs,
        period: PayPeriod,
        pay_date: date,
        holidays: list[Holiday],
    ) -> EmployeePayResult | EmployeeFailure:
        employee_id = inputs.profile.employee_id
        try:
            return self.calculate_employee(inputs, period, pay_date, holidays)
        except EmployeeComputationError as e:
            logger.warning("Payroll failed for employee %s: %s", employee_id, e.reason)
            return EmployeeFailure(employee_id, e.reason, type(e).__name__)
        except Exception as e:
            # Catch unexpected errors so one employee cannot sink the run
            logger.exception("Unexpected error calculating employee %s", employee_id)
            return EmployeeFailure(employee_id, f"Unexpected error: {e}", type(e).__name__)

    def _generate_calculation_id(
        self,
        period: PayPeriod,
        pay_date: date,
        employee_id: str,
        inputs_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "period": period.fingerprint(),
            "pay_date": pay_date.isoformat(),
            "employee_id": employee_id,
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "rates_fingerprint": self._rates_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_inputs_fingerprint(self, inputs: EmployeeInputs) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        data = {
            "profile": {k: str(v) for k, v in asdict(inputs.profile).items()},
            "hours": sorted(
                [str(e.work_date), str(e.hours), str(e.time_in), e.is_lunch]
                for e in inputs.hour_entries
            ),
            "special": sorted(
                [e.kind.value, str(e.start_date), str(e.end_date), str(e.total_hours),
                 str(e.hourly_rate), e.status, str(e.payment_percentage)]
                for e in inputs.special_entries
            ),
            "loans": sorted(
                [str(loan.loan_id), str(loan.remaining_balance), str(loan.installment_amount), loan.status]
                for loan in inputs.loans
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
