"""SQLAlchemy ORM models for the payroll engine."""

from antigua_payroll.models.base import Base, TimestampMixin
from antigua_payroll.models.employee import Employee, EmployeeBankAccount
from antigua_payroll.models.loans import EmployeeLoan, LoanPayment
from antigua_payroll.models.payroll import PayrollItem, PayrollRun, PayrollSettings, YTDSummary
from antigua_payroll.models.timekeeping import LeaveEntry, PublicHoliday, TimeEntry, VacationEntry

__all__ = [
    "Base",
    "TimestampMixin",
    # Employee
    "Employee",
    "EmployeeBankAccount",
    # Timekeeping
    "TimeEntry",
    "VacationEntry",
    "LeaveEntry",
    "PublicHoliday",
    # Payroll
    "PayrollSettings",
    "PayrollRun",
    "PayrollItem",
    "YTDSummary",
    # Loans
    "EmployeeLoan",
    "LoanPayment",
]
