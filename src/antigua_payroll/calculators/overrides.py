"""Manual overrides of computed pay."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from antigua_payroll.calculators.deductions import DeductionEngine, calculate_age
from antigua_payroll.calculators.types import EmployeeProfile, RateTable, round_money
from antigua_payroll.exceptions import OverrideError
from antigua_payroll.schemas import OverrideRequest

logger = logging.getLogger(__name__)


class OverrideApplier:
    """Replaces an employee's computed gross and/or net with an authorized amount.

    Works on anything exposing the payroll item fields: the in-memory result
    during a run, or a persisted PayrollItem afterwards. The first computed
    gross and net are kept in ``original_gross``/``original_net`` across
    repeated overrides.
    """

    def __init__(self, rates: RateTable):
        self.deductions = DeductionEngine(rates)

    def apply(
        self,
        target: Any,
        request: OverrideRequest,
        profile: EmployeeProfile,
        pay_date: date,
        at: datetime | None = None,
    ) -> Any:
        if request.employee_id != target.employee_id:
            raise OverrideError(
                f"Override for {request.employee_id} cannot apply to employee {target.employee_id}"
            )

        if not target.is_override:
            target.original_gross = target.gross_pay
            target.original_net = target.net_pay

        net = target.net_pay
        if request.gross_pay is not None:
            gross = round_money(request.gross_pay)
            statutory = self.deductions.calculate(
                gross,
                profile.frequency,
                calculate_age(profile.date_of_birth, pay_date),
                profile.is_exempt_ss,
                profile.is_exempt_medical,
            )
            target.gross_pay = gross
            target.ss_employee = statutory.ss_employee
            target.ss_employer = statutory.ss_employer
            target.mb_employee = statutory.mb_employee
            target.mb_employer = statutory.mb_employer
            target.education_levy = statutory.education_levy
            target.override_gross = gross
            net = gross - statutory.total_employee - target.loan_deduction

        if request.net_pay is not None:
            net = round_money(request.net_pay)

        if net < 0:
            raise OverrideError(
                f"Override for {request.employee_id} leaves a negative net pay ({net})"
            )

        target.net_pay = net
        target.override_net = net
        target.override_reason = request.reason
        target.override_by = request.actor
        target.override_at = at or datetime.now(timezone.utc)
        target.is_override = True

        logger.info(
            "Override applied to %s by %s: gross %s -> %s, net %s -> %s",
            target.employee_id,
            request.actor,
            target.original_gross,
            target.gross_pay,
            target.original_net,
            target.net_pay,
        )
        return target
