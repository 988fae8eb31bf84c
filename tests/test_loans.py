"""Tests for loan installment computation."""

from datetime import date
from decimal import Decimal

import pytest

from antigua_payroll.calculators.loans import LoanAmortizer
from antigua_payroll.calculators.types import LoanSnapshot
from antigua_payroll.exceptions import LoanNotActiveError

PAY_DATE = date(2024, 1, 15)


def make_loan(loan_id="L1", **overrides) -> LoanSnapshot:
    values = dict(
        loan_id=loan_id,
        employee_id="E1",
        loan_amount=Decimal("1000.00"),
        total_amount=Decimal("1000.00"),
        remaining_balance=Decimal("500.00"),
        installment_amount=Decimal("200.00"),
    )
    values.update(overrides)
    return LoanSnapshot(**values)


class TestInstallment:
    def test_regular_installment(self):
        update = LoanAmortizer().installment(make_loan(), PAY_DATE)

        assert update.amount == Decimal("200.00")
        assert update.previous_balance == Decimal("500.00")
        assert update.new_balance == Decimal("300.00")
        assert update.new_status == "active"
        assert update.completes_loan is False

    def test_never_more_than_remaining_balance(self):
        update = LoanAmortizer().installment(make_loan(remaining_balance=Decimal("50.00")), PAY_DATE)

        assert update.amount == Decimal("50.00")
        assert update.new_balance == Decimal("0.00")
        assert update.completes_loan is True

    def test_inactive_loan_raises(self):
        with pytest.raises(LoanNotActiveError):
            LoanAmortizer().installment(make_loan(status="completed"), PAY_DATE)

    def test_nothing_owed(self):
        assert LoanAmortizer().installment(make_loan(remaining_balance=Decimal("0")), PAY_DATE) is None

    def test_principal_interest_split(self):
        loan = make_loan(total_amount=Decimal("1100.00"), installment_amount=Decimal("110.00"))

        update = LoanAmortizer().installment(loan, PAY_DATE)

        assert update.principal_amount == Decimal("100.00")
        assert update.interest_amount == Decimal("10.00")


class TestCompute:
    def test_totals_by_loan_type(self):
        loans = [
            make_loan("L1"),
            make_loan(
                "L2",
                loan_type="third_party",
                installment_amount=Decimal("75.00"),
                third_party_name="Credit Union",
            ),
        ]

        result = LoanAmortizer().compute(loans, PAY_DATE)

        assert result.total == Decimal("275.00")
        assert result.internal == Decimal("200.00")
        assert result.third_party == Decimal("75.00")
        assert [u.loan_id for u in result.updates] == ["L1", "L2"]

    def test_inactive_loans_skipped(self):
        loans = [make_loan("L1"), make_loan("L2", status="cancelled")]

        result = LoanAmortizer().compute(loans, PAY_DATE)

        assert result.total == Decimal("200.00")
        assert len(result.skipped) == 1
        assert result.skipped[0].loan_id == "L2"
        assert result.skipped[0].status == "cancelled"

    def test_ordered_by_start_date(self):
        loans = [
            make_loan("L1", start_date=date(2023, 6, 1)),
            make_loan("L2", start_date=date(2023, 1, 1)),
        ]

        result = LoanAmortizer().compute(loans, PAY_DATE)

        assert [u.loan_id for u in result.updates] == ["L2", "L1"]
