"""Employee loan and loan payment ledger models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from antigua_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from antigua_payroll.models.employee import Employee
    from antigua_payroll.models.payroll import PayrollItem


class EmployeeLoan(Base, TimestampMixin):
    """Loan repaid through fixed payroll installments.

    ``total_amount`` includes interest; ``loan_amount`` is the principal.
    """

    __tablename__ = "employee_loan"

    loan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    loan_type: Mapped[str] = mapped_column(String(20), nullable=False, default="internal")
    loan_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Third-party payout
    third_party_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    third_party_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    third_party_routing: Mapped[str | None] = mapped_column(String(50), nullable=True)
    third_party_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("loan_type IN ('internal', 'third_party')", name="employee_loan_type_check"),
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')",
            name="employee_loan_status_check",
        ),
        CheckConstraint("remaining_balance >= 0", name="employee_loan_balance_nonnegative"),
        CheckConstraint("installment_amount > 0", name="employee_loan_installment_positive"),
    )

    employee: Mapped[Employee] = relationship(back_populates="loans")
    payments: Mapped[list[LoanPayment]] = relationship(
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanPayment.payment_date",
    )


class LoanPayment(Base, TimestampMixin):
    """One installment taken from a payroll item."""

    __tablename__ = "loan_payment"

    loan_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_loan.loan_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_item.payroll_item_id", ondelete="SET NULL"),
        nullable=True,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    principal_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("loan_id", "payroll_item_id", name="loan_payment_loan_item_unique"),
        CheckConstraint("amount > 0", name="loan_payment_amount_positive"),
    )

    loan: Mapped[EmployeeLoan] = relationship(back_populates="payments")
    payroll_item: Mapped[PayrollItem | None] = relationship(back_populates="loan_payments")
