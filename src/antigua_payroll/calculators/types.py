"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, fields
from datetime import date, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterator

from antigua_payroll.exceptions import (
    ConfigurationError,
    InvalidEmployeeError,
    UnknownClassificationError,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round an amount to cents, half-up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class EmployeeClassification(str, Enum):
    """Employee classifications with a pay strategy."""

    SALARY = "salary"
    HOURLY = "hourly"
    PRIVATE_DUTY_NURSE = "private_duty_nurse"
    SUPERVISOR = "supervisor"

    @classmethod
    def parse(cls, value: Any, employee_id: str | None = None) -> EmployeeClassification:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownClassificationError(value, employee_id) from None


class PayFrequency(str, Enum):
    """Pay frequencies."""

    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    SEMI_MONTHLY = "Semi-Monthly"
    MONTHLY = "Monthly"

    @property
    def weeks_per_period(self) -> Decimal:
        """Multiplier turning weekly standard hours into period hours."""
        return _WEEKS_PER_PERIOD[self]

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def monthly_scale(self) -> Decimal:
        """Share of a month covered by one period.

        Statutory ceilings and thresholds are published per month and are
        multiplied by this factor for other frequencies.
        """
        return _MONTHLY_SCALE[self]


_WEEKS_PER_PERIOD = {
    PayFrequency.WEEKLY: Decimal("1"),
    PayFrequency.BI_WEEKLY: Decimal("2"),
    PayFrequency.SEMI_MONTHLY: Decimal("2"),
    PayFrequency.MONTHLY: Decimal("4"),
}

_PERIODS_PER_YEAR = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.BI_WEEKLY: 26,
    PayFrequency.SEMI_MONTHLY: 24,
    PayFrequency.MONTHLY: 12,
}

_MONTHLY_SCALE = {
    PayFrequency.WEEKLY: Decimal("7") / Decimal("30"),
    PayFrequency.BI_WEEKLY: Decimal("14") / Decimal("30"),
    PayFrequency.SEMI_MONTHLY: Decimal("0.5"),
    PayFrequency.MONTHLY: Decimal("1"),
}


@dataclass
class EmployeeProfile:
    """Employee attributes the calculators need.

    ``classification`` and ``pay_frequency`` hold the stored values as-is;
    they are parsed inside the employee's own computation so that a bad
    value fails only that employee.
    """

    employee_id: str
    name: str
    classification: str
    pay_frequency: str
    standard_hours: Decimal = Decimal("40")
    salary_amount: Decimal | None = None  # monthly
    hourly_rate: Decimal | None = None
    is_exempt_ss: bool = False
    is_exempt_medical: bool = False
    date_of_birth: date | None = None
    status: str = "active"

    @property
    def kind(self) -> EmployeeClassification:
        return EmployeeClassification.parse(self.classification, self.employee_id)

    @property
    def frequency(self) -> PayFrequency:
        try:
            return PayFrequency(self.pay_frequency)
        except ValueError:
            raise InvalidEmployeeError(
                self.employee_id, f"unknown pay frequency '{self.pay_frequency}'"
            ) from None

    def validate(self) -> None:
        """Check compensation invariants, raising InvalidEmployeeError."""
        kind = self.kind
        self.frequency  # raises on an unknown frequency
        if self.standard_hours is None or self.standard_hours <= 0:
            raise InvalidEmployeeError(self.employee_id, "standard hours must be positive")
        if kind in (EmployeeClassification.SALARY, EmployeeClassification.SUPERVISOR):
            if self.salary_amount is None or self.salary_amount < 0:
                raise InvalidEmployeeError(
                    self.employee_id, f"{kind.value} employee requires a salary amount"
                )
        elif kind == EmployeeClassification.HOURLY:
            if self.hourly_rate is None or self.hourly_rate < 0:
                raise InvalidEmployeeError(self.employee_id, "hourly employee requires an hourly rate")


@dataclass(frozen=True)
class HourEntry:
    """Normalized hours worked on one date."""

    employee_id: str
    work_date: date
    hours: Decimal
    time_in: time | None = None
    is_lunch: bool = False


class SpecialPayKind(str, Enum):
    VACATION = "vacation"
    LEAVE = "leave"
    HOLIDAY = "holiday"


@dataclass(frozen=True)
class SpecialPayEntry:
    """Vacation or leave request covering a date range."""

    kind: SpecialPayKind
    start_date: date
    end_date: date
    total_hours: Decimal
    hourly_rate: Decimal | None = None
    status: str = "approved"
    leave_type: str | None = None
    payment_percentage: Decimal = HUNDRED
    entry_id: str | None = None

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"

    @property
    def calendar_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


@dataclass(frozen=True)
class Holiday:
    holiday_date: date
    name: str


class LoanType(str, Enum):
    INTERNAL = "internal"
    THIRD_PARTY = "third_party"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LoanSnapshot:
    """Loan state as read at the start of a run."""

    loan_id: Any
    employee_id: str
    loan_amount: Decimal
    total_amount: Decimal
    remaining_balance: Decimal
    installment_amount: Decimal
    loan_type: str = LoanType.INTERNAL.value
    status: str = LoanStatus.ACTIVE.value
    start_date: date | None = None
    third_party_name: str | None = None
    third_party_account: str | None = None
    third_party_routing: str | None = None
    third_party_reference: str | None = None


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive date range covered by a run."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Period end {self.end} is before start {self.start}")

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def overlap(self, start: date, end: date) -> tuple[date, date] | None:
        """Intersection with another inclusive range, or None."""
        lo = max(self.start, start)
        hi = min(self.end, end)
        if hi < lo:
            return None
        return lo, hi

    def standard_hours(self, profile: EmployeeProfile) -> Decimal:
        """Expected ordinary hours for the employee in this period."""
        return profile.standard_hours * profile.frequency.weeks_per_period

    def fingerprint(self) -> str:
        return f"{self.start.isoformat()}:{self.end.isoformat()}"


@dataclass(frozen=True)
class RateTable:
    """Statutory rates and shift rates for one run.

    Rates are fractions (0.07 for 7 %). Monetary limits are monthly
    reference amounts, scaled per frequency with ``scaled``.
    """

    ss_employee_rate: Decimal
    ss_employer_rate: Decimal
    ss_max_insurable: Decimal
    mb_employee_rate: Decimal
    mb_employer_rate: Decimal
    mb_senior_rate: Decimal
    el_low_rate: Decimal
    el_high_rate: Decimal
    el_threshold: Decimal
    el_exemption: Decimal
    nurse_day_rate: Decimal
    nurse_night_rate: Decimal
    nurse_weekend_day_rate: Decimal
    retirement_age: int = 65
    mb_senior_age: int = 60
    mb_max_age: int = 70
    nurse_day_start: time = time(7, 0)
    nurse_day_end: time = time(19, 0)
    nurse_shifts_per_week: int = 5
    overtime_multiplier: Decimal = Decimal("1.5")
    holiday_pay_enabled: bool = False

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal) and value < 0:
                raise ConfigurationError(f"Rate setting {f.name} cannot be negative")
        if not self.mb_senior_age <= self.mb_max_age:
            raise ConfigurationError("Medical Benefits senior age must not exceed max age")
        if self.nurse_day_start >= self.nurse_day_end:
            raise ConfigurationError("Nurse day shift must start before it ends")
        if self.nurse_shifts_per_week <= 0:
            raise ConfigurationError("Nurse shifts per week must be positive")

    @classmethod
    def antigua_defaults(cls, **overrides: Any) -> RateTable:
        """Current Antigua and Barbuda statutory defaults."""
        values: dict[str, Any] = dict(
            ss_employee_rate=Decimal("0.07"),
            ss_employer_rate=Decimal("0.09"),
            ss_max_insurable=Decimal("6500.00"),
            mb_employee_rate=Decimal("0.035"),
            mb_employer_rate=Decimal("0.035"),
            mb_senior_rate=Decimal("0.025"),
            el_low_rate=Decimal("0.025"),
            el_high_rate=Decimal("0.05"),
            el_threshold=Decimal("5000.00"),
            el_exemption=Decimal("541.67"),
            nurse_day_rate=Decimal("35.00"),
            nurse_night_rate=Decimal("40.00"),
            nurse_weekend_day_rate=Decimal("40.00"),
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_settings(cls, settings: Any) -> RateTable:
        """Build from a PayrollSettings row (percentages stored as 0-100)."""
        def pct(value: Any) -> Decimal:
            return Decimal(value) / HUNDRED

        return cls(
            ss_employee_rate=pct(settings.ss_employee_rate),
            ss_employer_rate=pct(settings.ss_employer_rate),
            ss_max_insurable=Decimal(settings.ss_max_insurable),
            mb_employee_rate=pct(settings.mb_employee_rate),
            mb_employer_rate=pct(settings.mb_employer_rate),
            mb_senior_rate=pct(settings.mb_senior_rate),
            el_low_rate=pct(settings.el_low_rate),
            el_high_rate=pct(settings.el_high_rate),
            el_threshold=Decimal(settings.el_threshold),
            el_exemption=Decimal(settings.el_exemption),
            nurse_day_rate=Decimal(settings.nurse_day_rate),
            nurse_night_rate=Decimal(settings.nurse_night_rate),
            nurse_weekend_day_rate=Decimal(settings.nurse_weekend_day_rate),
            retirement_age=settings.retirement_age,
            mb_senior_age=settings.mb_senior_age,
            mb_max_age=settings.mb_max_age,
            nurse_day_start=settings.nurse_day_start,
            nurse_day_end=settings.nurse_day_end,
            nurse_shifts_per_week=settings.nurse_shifts_per_week,
            overtime_multiplier=Decimal(settings.overtime_multiplier),
            holiday_pay_enabled=bool(settings.holiday_pay_enabled),
        )

    def scaled(self, monthly_amount: Decimal, frequency: PayFrequency) -> Decimal:
        """Scale a monthly reference amount to one period of ``frequency``."""
        return monthly_amount * frequency.monthly_scale

    def fingerprint(self) -> str:
        """Stable hash of every rate, recorded on the run for audit."""
        data = {f.name: str(getattr(self, f.name)) for f in fields(self)}
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()


@dataclass
class EmployeeInputs:
    """Everything loaded for one employee before computation."""

    profile: EmployeeProfile
    hour_entries: list[HourEntry] = field(default_factory=list)
    special_entries: list[SpecialPayEntry] = field(default_factory=list)
    loans: list[LoanSnapshot] = field(default_factory=list)
