"""Hour entries, approved time off and public holidays."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from antigua_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from antigua_payroll.models.employee import Employee


class TimeEntry(Base, TimestampMixin):
    """Normalized hours for one employee on one date."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    time_in: Mapped[time | None] = mapped_column(Time, nullable=True)
    time_out: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_lunch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    employee: Mapped[Employee] = relationship(back_populates="time_entries")


class VacationEntry(Base, TimestampMixin):
    """Vacation request covering a date range."""

    __tablename__ = "vacation_entry"

    vacation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="vacation_entry_date_range"),
        CheckConstraint("total_hours >= 0", name="vacation_entry_hours_nonnegative"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="vacation_entry_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="vacation_entries")


class LeaveEntry(Base, TimestampMixin):
    """Sick, maternity or compassionate leave covering a date range."""

    __tablename__ = "leave_entry"

    leave_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[str] = mapped_column(String(30), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    payment_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("100")
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_entry_date_range"),
        CheckConstraint(
            "payment_percentage >= 0 AND payment_percentage <= 100",
            name="leave_entry_payment_percentage_range",
        ),
        CheckConstraint(
            "leave_type IN ('maternity', 'compassionate', 'certified_sick', 'uncertified_sick')",
            name="leave_entry_type_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="leave_entry_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="leave_entries")


class PublicHoliday(Base, TimestampMixin):
    """Gazetted public holiday."""

    __tablename__ = "public_holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
