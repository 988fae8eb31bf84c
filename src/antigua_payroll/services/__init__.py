"""Payroll run services."""

from antigua_payroll.services.loan_ledger import LoanLedgerService
from antigua_payroll.services.pay_run_service import PayrollRunResult, PayrollRunService
from antigua_payroll.services.repository import PayrollRepository
from antigua_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

__all__ = [
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "InvalidTransitionError",
    "PayrollRunService",
    "PayrollRunResult",
    "PayrollRepository",
    "LoanLedgerService",
]
