"""Employee and banking models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from antigua_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from antigua_payroll.models.loans import EmployeeLoan
    from antigua_payroll.models.timekeeping import LeaveEntry, TimeEntry, VacationEntry


class Employee(Base, TimestampMixin):
    """Employee master record.

    ``classification`` is deliberately unconstrained at the database level:
    a value without a pay strategy fails that employee's computation rather
    than the whole run.
    """

    __tablename__ = "employee"

    employee_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    classification: Mapped[str] = mapped_column(String(30), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    salary_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    standard_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("40")
    )
    is_exempt_ss: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_exempt_medical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "pay_frequency IN ('Weekly', 'Bi-Weekly', 'Semi-Monthly', 'Monthly')",
            name="employee_pay_frequency_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint("standard_hours > 0", name="employee_standard_hours_positive"),
    )

    # Relationships
    bank_accounts: Mapped[list[EmployeeBankAccount]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    time_entries: Mapped[list[TimeEntry]] = relationship(back_populates="employee")
    vacation_entries: Mapped[list[VacationEntry]] = relationship(back_populates="employee")
    leave_entries: Mapped[list[LeaveEntry]] = relationship(back_populates="employee")
    loans: Mapped[list[EmployeeLoan]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def primary_bank_account(self) -> EmployeeBankAccount | None:
        """Primary account, falling back to the first one on file."""
        for account in self.bank_accounts:
            if account.is_primary:
                return account
        return self.bank_accounts[0] if self.bank_accounts else None


class EmployeeBankAccount(Base, TimestampMixin):
    """Direct-deposit destination for an employee."""

    __tablename__ = "employee_bank_account"

    bank_account_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Checking")
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    routing_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "account_type IN ('Checking', 'Savings')",
            name="employee_bank_account_type_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="bank_accounts")

    @property
    def is_complete(self) -> bool:
        """True when the account can receive a direct deposit."""
        return bool(self.account_number and self.routing_number)
