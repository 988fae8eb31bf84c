"""Loan installment computation.

Computing a deduction never touches the ledger: ``LoanAmortizer.compute``
returns ``LoanLedgerUpdate`` instructions that the run service applies in
its own persistence step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from antigua_payroll.calculators.types import (
    ZERO,
    LoanSnapshot,
    LoanStatus,
    LoanType,
    round_money,
)
from antigua_payroll.exceptions import LoanNotActiveError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoanLedgerUpdate:
    """Instruction to record one installment against a loan."""

    loan_id: Any
    employee_id: str
    loan_type: str
    payment_date: date
    amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal
    new_status: str
    third_party_name: str | None = None
    third_party_account: str | None = None
    third_party_routing: str | None = None
    third_party_reference: str | None = None

    @property
    def completes_loan(self) -> bool:
        return self.new_status == LoanStatus.COMPLETED.value


@dataclass(frozen=True)
class LoanSkip:
    """A loan excluded from this run's deduction."""

    loan_id: Any
    status: str
    reason: str


@dataclass
class LoanDeductionResult:
    total: Decimal = ZERO
    internal: Decimal = ZERO
    third_party: Decimal = ZERO
    updates: list[LoanLedgerUpdate] = field(default_factory=list)
    skipped: list[LoanSkip] = field(default_factory=list)


class LoanAmortizer:
    """Computes each loan's installment, never more than its remaining balance."""

    def compute(self, loans: Iterable[LoanSnapshot], payment_date: date) -> LoanDeductionResult:
        result = LoanDeductionResult()

        for loan in sorted(loans, key=lambda loan: (loan.start_date or date.min, str(loan.loan_id))):
            try:
                update = self.installment(loan, payment_date)
            except LoanNotActiveError as e:
                logger.warning("Skipping loan deduction: %s", e)
                result.skipped.append(LoanSkip(loan_id=loan.loan_id, status=loan.status, reason=str(e)))
                continue
            if update is None:
                continue

            result.updates.append(update)
            result.total += update.amount
            if update.loan_type == LoanType.THIRD_PARTY.value:
                result.third_party += update.amount
            else:
                result.internal += update.amount

        return result

    def installment(self, loan: LoanSnapshot, payment_date: date) -> LoanLedgerUpdate | None:
        """Ledger update for one loan, or None when nothing is owed.

        Raises LoanNotActiveError for completed or cancelled loans.
        """
        if loan.status != LoanStatus.ACTIVE.value:
            raise LoanNotActiveError(loan.loan_id, loan.status)
        if loan.remaining_balance <= 0 or loan.installment_amount <= 0:
            return None

        amount = round_money(min(loan.installment_amount, loan.remaining_balance))
        principal, interest = self.split(loan, amount)
        new_balance = round_money(loan.remaining_balance - amount)
        new_status = LoanStatus.COMPLETED.value if new_balance <= 0 else LoanStatus.ACTIVE.value

        return LoanLedgerUpdate(
            loan_id=loan.loan_id,
            employee_id=loan.employee_id,
            loan_type=loan.loan_type,
            payment_date=payment_date,
            amount=amount,
            principal_amount=principal,
            interest_amount=interest,
            previous_balance=loan.remaining_balance,
            new_balance=max(new_balance, ZERO),
            new_status=new_status,
            third_party_name=loan.third_party_name,
            third_party_account=loan.third_party_account,
            third_party_routing=loan.third_party_routing,
            third_party_reference=loan.third_party_reference,
        )

    @staticmethod
    def split(loan: LoanSnapshot, amount: Decimal) -> tuple[Decimal, Decimal]:
        """Split an installment into principal and interest by the loan's principal share."""
        if loan.total_amount <= 0 or loan.loan_amount >= loan.total_amount:
            return amount, ZERO
        principal = round_money(amount * loan.loan_amount / loan.total_amount)
        return principal, amount - principal
