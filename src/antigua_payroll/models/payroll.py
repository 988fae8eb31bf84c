"""Rate settings, payroll run, payroll item and YTD summary models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from antigua_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from antigua_payroll.models.employee import Employee
    from antigua_payroll.models.loans import LoanPayment

ZERO = Decimal("0")


class PayrollSettings(Base, TimestampMixin):
    """Statutory rates and shift-pay configuration.

    Percentages are stored as entered by administrators (7.00 means 7 %).
    Ceilings and thresholds are monthly reference amounts.
    """

    __tablename__ = "payroll_settings"

    settings_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Social Security
    ss_employee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("7.00"))
    ss_employer_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("9.00"))
    ss_max_insurable: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("6500.00"))
    retirement_age: Mapped[int] = mapped_column(Integer, nullable=False, default=65)

    # Medical Benefits
    mb_employee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("3.50"))
    mb_employer_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("3.50"))
    mb_senior_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("2.50"))
    mb_senior_age: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    mb_max_age: Mapped[int] = mapped_column(Integer, nullable=False, default=70)

    # Education Levy
    el_low_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("2.50"))
    el_high_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("5.00"))
    el_threshold: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("5000.00"))
    el_exemption: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("541.67"))

    # Private duty nurse shifts
    nurse_day_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("35.00"))
    nurse_night_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("40.00"))
    nurse_weekend_day_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("40.00"))
    nurse_day_start: Mapped[time] = mapped_column(Time, nullable=False, default=time(7, 0))
    nurse_day_end: Mapped[time] = mapped_column(Time, nullable=False, default=time(19, 0))
    nurse_shifts_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    overtime_multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False, default=Decimal("1.50"))
    holiday_pay_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# Statuses that allow only one run per period
BLOCKING_STATUS_SQL = "status IN ('processing', 'completed', 'finalized')"


class PayrollRun(Base, TimestampMixin):
    """One payroll execution for a pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="processing")

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    total_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    rates_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    engine_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    finalized_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="payroll_run_period_range"),
        CheckConstraint(
            "status IN ('processing', 'completed', 'completed_with_errors', 'finalized')",
            name="payroll_run_status_check",
        ),
        Index(
            "payroll_run_period_blocking",
            "period_start",
            "period_end",
            unique=True,
            postgresql_where=text(BLOCKING_STATUS_SQL),
            sqlite_where=text(BLOCKING_STATUS_SQL),
        ),
    )

    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="PayrollItem.employee_id",
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == "finalized"


class PayrollItem(Base, TimestampMixin):
    """Computed pay for one employee in one run."""

    __tablename__ = "payroll_item"

    payroll_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    classification: Mapped[str] = mapped_column(String(30), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    calculation_id: Mapped[UUID] = mapped_column(nullable=False)

    # Hours
    worked_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    vacation_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    leave_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    holiday_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    lunch_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)

    # Earnings
    base_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    regular_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    vacation_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    leave_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    leave_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    holiday_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Statutory deductions
    ss_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    ss_employer: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    mb_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    mb_employer: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    education_levy: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Loans
    loan_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    internal_loan_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    third_party_loan_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Override audit
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    override_gross: Mapped[Decimal | None] = mapped_column(nullable=True)
    override_net: Mapped[Decimal | None] = mapped_column(nullable=True)
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    override_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    override_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    original_gross: Mapped[Decimal | None] = mapped_column(nullable=True)
    original_net: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Year-to-date snapshot including this item
    ytd_gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_ss_employee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_ss_employer: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_mb_employee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_mb_employer: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_education_levy: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_worked_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    ytd_overtime_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    ytd_vacation_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    ytd_vacation_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_leave_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    ytd_leave_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_holiday_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    ytd_holiday_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ytd_loan_deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)

    warnings: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_item_run_employee_unique"),
        CheckConstraint("net_pay >= 0", name="payroll_item_net_nonnegative"),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="items")
    employee: Mapped[Employee] = relationship()
    loan_payments: Mapped[list[LoanPayment]] = relationship(
        back_populates="payroll_item", passive_deletes=True
    )


class YTDSummary(Base):
    """Running year-to-date totals per employee."""

    __tablename__ = "employee_ytd_summary"

    ytd_summary_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ss_employee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    ss_employer: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    mb_employee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    mb_employer: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    education_levy: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    worked_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    vacation_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    vacation_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    leave_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    leave_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    holiday_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    holiday_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    loan_deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)

    last_payroll_run_id: Mapped[UUID | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="employee_ytd_summary_employee_year_unique"),
    )
