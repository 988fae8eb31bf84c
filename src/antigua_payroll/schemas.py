"""Pydantic schemas for override requests and run read models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Requests
# ============================================================================


class OverrideRequest(BaseModel):
    """Administrator-authorized replacement of an employee's computed pay."""

    employee_id: str = Field(min_length=1)
    net_pay: Decimal | None = Field(default=None, ge=0)
    gross_pay: Decimal | None = Field(default=None, ge=0)
    reason: str = Field(min_length=1)
    actor: str = Field(min_length=1)

    @model_validator(mode="after")
    def require_amount(self) -> "OverrideRequest":
        if self.net_pay is None and self.gross_pay is None:
            raise ValueError("An override needs a net or gross amount")
        if self.reason.strip() == "" or self.actor.strip() == "":
            raise ValueError("An override needs a reason and an actor")
        return self


# ============================================================================
# Read models
# ============================================================================


class PayrollItemResponse(BaseModel):
    """Schema for a payroll item."""

    model_config = ConfigDict(from_attributes=True)

    payroll_item_id: UUID
    employee_id: str
    employee_name: str
    classification: str
    pay_frequency: str
    worked_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    vacation_hours: Decimal
    leave_hours: Decimal
    holiday_hours: Decimal
    lunch_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    vacation_amount: Decimal
    leave_amount: Decimal
    leave_type: str | None = None
    holiday_amount: Decimal
    gross_pay: Decimal
    ss_employee: Decimal
    ss_employer: Decimal
    mb_employee: Decimal
    mb_employer: Decimal
    education_levy: Decimal
    loan_deduction: Decimal
    internal_loan_deduction: Decimal
    third_party_loan_deduction: Decimal
    net_pay: Decimal
    is_override: bool
    override_reason: str | None = None
    override_by: str | None = None
    original_gross: Decimal | None = None
    original_net: Decimal | None = None
    ytd_gross_pay: Decimal
    ytd_net_pay: Decimal
    warnings: list[str] = Field(default_factory=list)


class PayrollRunResponse(BaseModel):
    """Schema for a payroll run with its items."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    period_start: date
    period_end: date
    pay_date: date
    status: str
    total_employees: int
    total_gross: Decimal
    total_net: Decimal
    error_count: int
    errors: list[dict[str, Any]] = Field(default_factory=list)
    created_by: str
    finalized_by: str | None = None
    finalized_at: datetime | None = None
    items: list[PayrollItemResponse] = Field(default_factory=list)
