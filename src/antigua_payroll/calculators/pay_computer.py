"""Base gross pay strategies, one per employee classification."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import Iterable

from antigua_payroll.calculators.types import (
    ZERO,
    EmployeeClassification,
    EmployeeProfile,
    HourEntry,
    PayPeriod,
    RateTable,
    round_money,
)
from antigua_payroll.exceptions import MalformedHourEntryError

MAX_HOURS_PER_ENTRY = Decimal("24")
NOON = time(12, 0)


@dataclass
class WorkedHours:
    """Ordinary hours split from lunch-excluded hours."""

    worked: Decimal = ZERO
    lunch: Decimal = ZERO
    entries: list[HourEntry] = field(default_factory=list)


@dataclass
class NurseShift:
    """One day of private-duty nursing."""

    work_date: date
    hours: Decimal
    shift_type: str  # 'day', 'night', 'weekend_day'
    rate: Decimal

    @property
    def amount(self) -> Decimal:
        return self.hours * self.rate


@dataclass
class BasePayResult:
    """Base gross pay before special pay and deductions."""

    worked_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    lunch_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    period_base_pay: Decimal = ZERO  # unprorated salary for the period
    proration_factor: Decimal = Decimal("1")
    shifts: list[NurseShift] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def base_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay


def split_worked_hours(profile: EmployeeProfile, period: PayPeriod, entries: Iterable[HourEntry]) -> WorkedHours:
    """Validate hour entries and total ordinary and lunch hours."""
    result = WorkedHours()
    for entry in entries:
        if entry.employee_id != profile.employee_id:
            raise MalformedHourEntryError(
                profile.employee_id, entry.work_date, f"belongs to employee {entry.employee_id}"
            )
        if not period.contains(entry.work_date):
            raise MalformedHourEntryError(profile.employee_id, entry.work_date, "outside the pay period")
        if entry.hours < 0 or entry.hours > MAX_HOURS_PER_ENTRY:
            raise MalformedHourEntryError(
                profile.employee_id, entry.work_date, f"invalid hours {entry.hours}"
            )
        if entry.is_lunch:
            result.lunch += entry.hours
        else:
            result.worked += entry.hours
            result.entries.append(entry)
    return result


class PayStrategy:
    """Base gross pay rules for one classification."""

    classification: EmployeeClassification
    eligible_for_overtime = True
    eligible_for_special_pay = True

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        hours: WorkedHours,
        rates: RateTable,
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        raise NotImplementedError

    def period_base_pay(self, profile: EmployeeProfile) -> Decimal:
        return ZERO

    def effective_hourly_rate(
        self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable
    ) -> Decimal:
        """Rate used to value vacation and leave hours."""
        raise NotImplementedError

    def holiday_rate(self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable) -> Decimal:
        return self.effective_hourly_rate(profile, period, rates)

    def standard_daily_hours(self, profile: EmployeeProfile, rates: RateTable) -> Decimal:
        return profile.standard_hours / Decimal("5")


class SalaryPay(PayStrategy):
    """Fixed period salary, prorated down when hours fall short."""

    classification = EmployeeClassification.SALARY
    eligible_for_overtime = False

    def period_base_pay(self, profile: EmployeeProfile) -> Decimal:
        frequency = profile.frequency
        return (profile.salary_amount or ZERO) * Decimal("12") / Decimal(frequency.periods_per_year)

    def effective_hourly_rate(
        self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable
    ) -> Decimal:
        return self.period_base_pay(profile) / period.standard_hours(profile)

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        hours: WorkedHours,
        rates: RateTable,
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        standard = period.standard_hours(profile)
        period_base = self.period_base_pay(profile)
        notes: list[str] = []

        factor = Decimal("1")
        if hours.worked < standard:
            factor = min(Decimal("1"), (hours.worked + credited_hours) / standard)
        elif hours.worked > standard:
            notes.append(
                f"{hours.worked - standard} hours above the {standard} standard hours are not paid as overtime"
            )

        return BasePayResult(
            worked_hours=hours.worked,
            regular_hours=min(hours.worked, standard),
            overtime_hours=ZERO,
            lunch_hours=hours.lunch,
            regular_pay=round_money(period_base * factor),
            overtime_pay=ZERO,
            period_base_pay=round_money(period_base),
            proration_factor=factor,
            notes=notes,
        )


class SupervisorPay(SalaryPay):
    """Salaried, with no overtime and no vacation, leave or holiday pay."""

    classification = EmployeeClassification.SUPERVISOR
    eligible_for_special_pay = False

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        hours: WorkedHours,
        rates: RateTable,
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        result = super().compute(profile, period, hours, rates, ZERO)
        result.notes.append("supervisor: not eligible for overtime or special pay")
        return result


class HourlyPay(PayStrategy):
    """Hours times rate, with overtime past the period's standard hours."""

    classification = EmployeeClassification.HOURLY

    def effective_hourly_rate(
        self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable
    ) -> Decimal:
        return profile.hourly_rate or ZERO

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        hours: WorkedHours,
        rates: RateTable,
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        rate = profile.hourly_rate or ZERO
        standard = period.standard_hours(profile)
        regular = min(hours.worked, standard)
        overtime = hours.worked - regular

        return BasePayResult(
            worked_hours=hours.worked,
            regular_hours=regular,
            overtime_hours=overtime,
            lunch_hours=hours.lunch,
            regular_pay=round_money(regular * rate),
            overtime_pay=round_money(overtime * rate * rates.overtime_multiplier),
        )


class NursePay(PayStrategy):
    """Per-day shift rates by day/night window and weekday/weekend.

    A day's shift type is decided by its earliest clock-in; days without a
    clock-in count as day shifts.
    """

    classification = EmployeeClassification.PRIVATE_DUTY_NURSE
    eligible_for_overtime = False

    def effective_hourly_rate(
        self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable
    ) -> Decimal:
        return profile.hourly_rate or rates.nurse_day_rate

    def holiday_rate(self, profile: EmployeeProfile, period: PayPeriod, rates: RateTable) -> Decimal:
        return rates.nurse_day_rate

    def standard_daily_hours(self, profile: EmployeeProfile, rates: RateTable) -> Decimal:
        return profile.standard_hours / Decimal(rates.nurse_shifts_per_week)

    def classify_shift(self, work_date: date, start: time, rates: RateTable) -> tuple[str, Decimal]:
        is_day = rates.nurse_day_start <= start < rates.nurse_day_end
        if not is_day:
            return "night", rates.nurse_night_rate
        if work_date.weekday() >= 5:
            return "weekend_day", rates.nurse_weekend_day_rate
        return "day", rates.nurse_day_rate

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        hours: WorkedHours,
        rates: RateTable,
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        by_day: dict[date, list[HourEntry]] = defaultdict(list)
        for entry in hours.entries:
            by_day[entry.work_date].append(entry)

        shifts: list[NurseShift] = []
        for work_date in sorted(by_day):
            day_entries = by_day[work_date]
            starts = [e.time_in for e in day_entries if e.time_in is not None]
            start = min(starts) if starts else NOON
            shift_type, rate = self.classify_shift(work_date, start, rates)
            shifts.append(
                NurseShift(
                    work_date=work_date,
                    hours=sum((e.hours for e in day_entries), ZERO),
                    shift_type=shift_type,
                    rate=rate,
                )
            )

        pay = sum((s.amount for s in shifts), ZERO)
        return BasePayResult(
            worked_hours=hours.worked,
            regular_hours=hours.worked,
            overtime_hours=ZERO,
            lunch_hours=hours.lunch,
            regular_pay=round_money(pay),
            overtime_pay=ZERO,
            shifts=shifts,
        )


STRATEGIES: dict[EmployeeClassification, PayStrategy] = {
    strategy.classification: strategy
    for strategy in (SalaryPay(), HourlyPay(), NursePay(), SupervisorPay())
}


class PayComputer:
    """Dispatches base pay computation to the employee's strategy."""

    def __init__(self, rates: RateTable):
        self.rates = rates

    @staticmethod
    def strategy_for(profile: EmployeeProfile) -> PayStrategy:
        return STRATEGIES[profile.kind]

    def compute(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        entries: Iterable[HourEntry],
        credited_hours: Decimal = ZERO,
    ) -> BasePayResult:
        """Compute regular/overtime split and base gross pay.

        ``credited_hours`` are paid special-pay hours that count toward the
        salaried proration.
        """
        strategy = self.strategy_for(profile)
        hours = split_worked_hours(profile, period, entries)
        return strategy.compute(profile, period, hours, self.rates, credited_hours)
