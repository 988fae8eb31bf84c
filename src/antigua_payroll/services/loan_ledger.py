"""Applies computed loan installments to the loan ledger."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from antigua_payroll.calculators.loans import LoanLedgerUpdate
from antigua_payroll.calculators.types import LoanStatus
from antigua_payroll.exceptions import LoanLedgerConflictError
from antigua_payroll.models import EmployeeLoan, LoanPayment

logger = logging.getLogger(__name__)


class LoanLedgerService:
    """Writes loan balance changes with a compare-and-swap on the balance.

    The balance only moves if it still equals the value the installment was
    computed from, so two runs can never both deduct against the same
    starting balance.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def apply(self, ledger_update: LoanLedgerUpdate, payroll_item_id: UUID | None) -> LoanPayment:
        result = await self.session.execute(
            update(EmployeeLoan)
            .where(
                EmployeeLoan.loan_id == ledger_update.loan_id,
                EmployeeLoan.status == LoanStatus.ACTIVE.value,
                EmployeeLoan.remaining_balance == ledger_update.previous_balance,
            )
            .values(
                remaining_balance=ledger_update.new_balance,
                status=ledger_update.new_status,
            )
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            raise LoanLedgerConflictError(ledger_update.loan_id, ledger_update.previous_balance)

        payment = LoanPayment(
            loan_id=ledger_update.loan_id,
            payroll_item_id=payroll_item_id,
            payment_date=ledger_update.payment_date,
            amount=ledger_update.amount,
            principal_amount=ledger_update.principal_amount,
            interest_amount=ledger_update.interest_amount,
            remaining_balance=ledger_update.new_balance,
        )
        self.session.add(payment)

        if ledger_update.completes_loan:
            logger.info("Loan %s paid off", ledger_update.loan_id)
        return payment
