"""Payroll calculation engine."""

from antigua_payroll.calculators.deductions import DeductionEngine, StatutoryDeductions
from antigua_payroll.calculators.engine import EmployeePayResult, PayrollEngine
from antigua_payroll.calculators.loans import LoanAmortizer, LoanLedgerUpdate
from antigua_payroll.calculators.overrides import OverrideApplier
from antigua_payroll.calculators.pay_computer import PayComputer
from antigua_payroll.calculators.special_pay import SpecialPayResolver
from antigua_payroll.calculators.types import RateTable
from antigua_payroll.calculators.ytd import YTDAggregator, YTDTotals

__all__ = [
    "PayrollEngine",
    "EmployeePayResult",
    "RateTable",
    "PayComputer",
    "SpecialPayResolver",
    "DeductionEngine",
    "StatutoryDeductions",
    "LoanAmortizer",
    "LoanLedgerUpdate",
    "OverrideApplier",
    "YTDAggregator",
    "YTDTotals",
]
