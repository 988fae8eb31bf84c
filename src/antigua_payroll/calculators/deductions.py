"""Statutory deductions: Social Security, Medical Benefits and Education Levy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from antigua_payroll.calculators.types import ZERO, PayFrequency, RateTable, round_money


def calculate_age(date_of_birth: date | None, on: date) -> int | None:
    """Age in completed years on ``on``; None when the birth date is unknown."""
    if date_of_birth is None:
        return None
    age = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


@dataclass(frozen=True)
class StatutoryDeductions:
    """Employee and employer statutory amounts for one period."""

    ss_employee: Decimal = ZERO
    ss_employer: Decimal = ZERO
    mb_employee: Decimal = ZERO
    mb_employer: Decimal = ZERO
    education_levy: Decimal = ZERO

    @property
    def total_employee(self) -> Decimal:
        return self.ss_employee + self.mb_employee + self.education_levy

    @property
    def total_employer(self) -> Decimal:
        return self.ss_employer + self.mb_employer


class DeductionEngine:
    """Computes statutory deductions against one RateTable.

    Ceilings and thresholds in the table are monthly; every calculation
    scales them to the employee's pay frequency first. Each result is
    rounded half-up to cents, intermediates are not.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def calculate(
        self,
        gross: Decimal,
        frequency: PayFrequency,
        age: int | None = None,
        is_exempt_ss: bool = False,
        is_exempt_medical: bool = False,
    ) -> StatutoryDeductions:
        if gross <= 0:
            return StatutoryDeductions()

        ss_employee, ss_employer = self.social_security(gross, frequency, age, is_exempt_ss)
        mb_employee, mb_employer = self.medical_benefits(gross, age, is_exempt_medical)
        return StatutoryDeductions(
            ss_employee=ss_employee,
            ss_employer=ss_employer,
            mb_employee=mb_employee,
            mb_employer=mb_employer,
            education_levy=self.education_levy(gross, frequency),
        )

    def social_security(
        self,
        gross: Decimal,
        frequency: PayFrequency,
        age: int | None = None,
        is_exempt: bool = False,
    ) -> tuple[Decimal, Decimal]:
        """Social Security on gross up to the period's insurable ceiling.

        Employees at or past retirement age no longer contribute.
        """
        if is_exempt or gross <= 0:
            return ZERO, ZERO
        if age is not None and age >= self.rates.retirement_age:
            return ZERO, ZERO

        ceiling = self.rates.scaled(self.rates.ss_max_insurable, frequency)
        base = min(gross, ceiling)
        return (
            round_money(base * self.rates.ss_employee_rate),
            round_money(base * self.rates.ss_employer_rate),
        )

    def medical_benefits(
        self,
        gross: Decimal,
        age: int | None = None,
        is_exempt: bool = False,
    ) -> tuple[Decimal, Decimal]:
        """Medical Benefits on full gross with senior and upper-age bands."""
        if is_exempt or gross <= 0:
            return ZERO, ZERO

        if age is not None and age >= self.rates.mb_max_age:
            return ZERO, ZERO
        if age is not None and age >= self.rates.mb_senior_age:
            return round_money(gross * self.rates.mb_senior_rate), ZERO

        return (
            round_money(gross * self.rates.mb_employee_rate),
            round_money(gross * self.rates.mb_employer_rate),
        )

    def education_levy(self, gross: Decimal, frequency: PayFrequency) -> Decimal:
        """Two-tier levy on gross above the period's exemption."""
        exemption = self.rates.scaled(self.rates.el_exemption, frequency)
        threshold = self.rates.scaled(self.rates.el_threshold, frequency)

        taxable = max(ZERO, gross - exemption)
        if taxable <= threshold:
            levy = taxable * self.rates.el_low_rate
        else:
            levy = threshold * self.rates.el_low_rate + (taxable - threshold) * self.rates.el_high_rate
        return round_money(levy)
