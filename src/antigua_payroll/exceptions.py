"""Error taxonomy for payroll computation and run management.

Configuration and conflict errors reject a run before anything is persisted.
Per-employee errors are collected into the run's failure manifest and never
abort the other employees.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any


class PayrollError(Exception):
    """Base class for all payroll engine errors."""


# ===== Configuration =====


class ConfigurationError(PayrollError):
    """Raised when the run cannot start because configuration is missing or invalid."""


# ===== Per-employee computation =====


class EmployeeComputationError(PayrollError):
    """Raised when a single employee's pay cannot be computed."""

    def __init__(self, employee_id: str | None, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        if employee_id:
            super().__init__(f"Employee {employee_id}: {reason}")
        else:
            super().__init__(reason)


class UnknownClassificationError(EmployeeComputationError):
    """Raised when an employee's classification has no pay strategy."""

    def __init__(self, classification: Any, employee_id: str | None = None):
        self.classification = classification
        super().__init__(employee_id, f"unknown classification '{classification}'")


class InvalidEmployeeError(EmployeeComputationError):
    """Raised when an employee record violates its compensation invariants."""


class MalformedHourEntryError(EmployeeComputationError):
    """Raised when an hour entry cannot be used for computation."""

    def __init__(self, employee_id: str | None, work_date: date, reason: str):
        self.work_date = work_date
        super().__init__(employee_id, f"hour entry on {work_date.isoformat()}: {reason}")


class NegativeAmountError(EmployeeComputationError):
    """Raised when a computed amount would be negative."""

    def __init__(self, employee_id: str | None, field: str, amount: Decimal):
        self.field = field
        self.amount = amount
        super().__init__(employee_id, f"computed {field} is negative ({amount})")


# ===== Conflicts =====


class ConflictError(PayrollError):
    """Raised when a request conflicts with existing run or ledger state."""


class DuplicateRunError(ConflictError):
    """Raised when a period already has a run that blocks a new submission."""

    def __init__(
        self,
        period_start: date,
        period_end: date,
        existing_run_id: Any = None,
        existing_status: str | None = None,
    ):
        self.period_start = period_start
        self.period_end = period_end
        self.existing_run_id = existing_run_id
        self.existing_status = existing_status
        msg = f"Payroll for {period_start.isoformat()} to {period_end.isoformat()} already exists"
        if existing_run_id is not None:
            msg += f" (run {existing_run_id}, status '{existing_status}')"
        else:
            msg += " or is being processed"
        super().__init__(msg)


class RunFinalizedError(ConflictError):
    """Raised when a finalized run would be changed."""

    def __init__(self, run_id: Any, action: str):
        self.run_id = run_id
        self.action = action
        super().__init__(f"Cannot {action} payroll run {run_id}: run is finalized")


class LoanLedgerConflictError(ConflictError):
    """Raised when a loan balance moved between computation and ledger update."""

    def __init__(self, loan_id: Any, expected_balance: Decimal):
        self.loan_id = loan_id
        self.expected_balance = expected_balance
        super().__init__(
            f"Loan {loan_id} balance changed concurrently (expected {expected_balance})"
        )


class RatesChangedError(ConflictError):
    """Raised when a run's items would be recomputed with different rates."""

    def __init__(self, run_id: Any, run_fingerprint: str | None, active_fingerprint: str):
        self.run_id = run_id
        self.run_fingerprint = run_fingerprint
        self.active_fingerprint = active_fingerprint
        super().__init__(
            f"Active payroll settings changed since run {run_id} was computed; "
            "recompute the run instead of overriding it"
        )


# ===== Lookups and requests =====


class RunNotFoundError(PayrollError):
    """Raised when a payroll run does not exist."""

    def __init__(self, run_id: Any):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


class LoanNotActiveError(PayrollError):
    """Raised when a deduction is attempted against a loan that is not active."""

    def __init__(self, loan_id: Any, status: str):
        self.loan_id = loan_id
        self.status = status
        super().__init__(f"Loan {loan_id} is {status}, not active")


class OverrideError(PayrollError):
    """Raised when an override request cannot be applied."""
