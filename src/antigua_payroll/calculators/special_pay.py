"""Vacation, leave and public holiday pay for a period."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from antigua_payroll.calculators.pay_computer import PayComputer, PayStrategy
from antigua_payroll.calculators.types import (
    HUNDRED,
    ZERO,
    EmployeeClassification,
    EmployeeProfile,
    Holiday,
    PayPeriod,
    RateTable,
    SpecialPayEntry,
    SpecialPayKind,
    round_money,
)

logger = logging.getLogger(__name__)


@dataclass
class SpecialPayResult:
    """Hours and amounts per special-pay category."""

    vacation_hours: Decimal = ZERO
    vacation_amount: Decimal = ZERO
    leave_hours: Decimal = ZERO
    leave_amount: Decimal = ZERO
    leave_type: str | None = None
    holiday_hours: Decimal = ZERO
    holiday_amount: Decimal = ZERO
    # Paid hours counted toward salaried proration (leave scaled by its payment percentage)
    credited_hours: Decimal = ZERO
    # Salaried vacation/leave is already inside base pay and only reported
    embedded_in_base: bool = False
    holidays: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def payable_amount(self) -> Decimal:
        """Amount added on top of base pay."""
        if self.embedded_in_base:
            return self.holiday_amount
        return self.vacation_amount + self.leave_amount + self.holiday_amount


class SpecialPayResolver:
    """Reconciles approved time off and holidays against a pay period.

    Entries that straddle a period boundary contribute hours in proportion to
    the calendar days they cover inside the period. When two categories
    claim the same date both are paid and a warning is raised.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def resolve(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        entries: Iterable[SpecialPayEntry],
        holidays: Iterable[Holiday] = (),
        strategy: PayStrategy | None = None,
    ) -> SpecialPayResult:
        strategy = strategy or PayComputer.strategy_for(profile)
        result = SpecialPayResult()

        approved = [
            e for e in entries
            if e.is_approved and period.overlap(e.start_date, e.end_date) is not None
        ]
        holidays_in_period = sorted(
            (h for h in holidays if period.contains(h.holiday_date)),
            key=lambda h: h.holiday_date,
        )

        if not strategy.eligible_for_special_pay:
            ignored = len(approved) + (len(holidays_in_period) if self.rates.holiday_pay_enabled else 0)
            if ignored:
                result.warnings.append(
                    f"{strategy.classification.value} is not eligible for vacation, leave "
                    f"or holiday pay; {ignored} approved entries ignored"
                )
            return result

        base_rate = strategy.effective_hourly_rate(profile, period, self.rates)
        claimed: dict[date, list[str]] = defaultdict(list)
        leave_types: list[str] = []

        for entry in sorted(approved, key=lambda e: (e.start_date, e.kind.value)):
            hours = self._hours_in_period(entry, period, claimed)
            rate = entry.hourly_rate if entry.hourly_rate is not None else base_rate

            if entry.kind == SpecialPayKind.VACATION:
                result.vacation_hours += hours
                result.vacation_amount += hours * rate
                result.credited_hours += hours
            elif entry.kind == SpecialPayKind.LEAVE:
                share = entry.payment_percentage / HUNDRED
                result.leave_hours += hours
                result.leave_amount += hours * rate * share
                result.credited_hours += hours * share
                if entry.leave_type and entry.leave_type not in leave_types:
                    leave_types.append(entry.leave_type)
            else:
                logger.warning("Ignoring special pay entry of kind %s", entry.kind)

        if self.rates.holiday_pay_enabled:
            daily_hours = strategy.standard_daily_hours(profile, self.rates)
            holiday_rate = strategy.holiday_rate(profile, period, self.rates)
            for holiday in holidays_in_period:
                result.holiday_hours += daily_hours
                result.holiday_amount += daily_hours * holiday_rate
                result.holidays.append(holiday.name)
                claimed[holiday.holiday_date].append(SpecialPayKind.HOLIDAY.value)

        for day in sorted(claimed):
            kinds = claimed[day]
            if len(kinds) > 1:
                result.warnings.append(
                    f"{day.isoformat()}: {' and '.join(kinds)} both paid for the same date"
                )

        result.vacation_hours = round_money(result.vacation_hours)
        result.vacation_amount = round_money(result.vacation_amount)
        result.leave_hours = round_money(result.leave_hours)
        result.leave_amount = round_money(result.leave_amount)
        result.holiday_hours = round_money(result.holiday_hours)
        result.holiday_amount = round_money(result.holiday_amount)
        result.leave_type = ",".join(leave_types) or None
        result.embedded_in_base = strategy.classification == EmployeeClassification.SALARY
        return result

    @staticmethod
    def _hours_in_period(
        entry: SpecialPayEntry, period: PayPeriod, claimed: dict[date, list[str]]
    ) -> Decimal:
        """Hours of ``entry`` that fall inside ``period``, marking claimed dates."""
        overlap = period.overlap(entry.start_date, entry.end_date)
        if overlap is None:
            return ZERO
        lo, hi = overlap
        days_inside = (hi - lo).days + 1
        for offset in range(days_inside):
            claimed[lo + timedelta(days=offset)].append(entry.kind.value)
        if days_inside == entry.calendar_days:
            return entry.total_hours
        return entry.total_hours * Decimal(days_inside) / Decimal(entry.calendar_days)
