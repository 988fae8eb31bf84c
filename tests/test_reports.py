"""Tests for ACH, deductions and third-party payout reports."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from antigua_payroll.exceptions import RunNotFoundError
from antigua_payroll.reports import (
    ReportService,
    build_ach_export,
    build_deductions_report,
    format_institute,
    group_third_party_payouts,
)
from antigua_payroll.services import PayrollRunService

from conftest import add_employee, add_hours, add_loan

PERIOD = (date(2024, 1, 1), date(2024, 1, 14), date(2024, 1, 19))


def item(employee_id, name, net, **fields):
    return SimpleNamespace(
        payroll_item_id=uuid4(), employee_id=employee_id, employee_name=name, net_pay=Decimal(net), **fields
    )


def employee(account=None, city="St. John's", country="Antigua"):
    return SimpleNamespace(primary_bank_account=account, city=city, country=country)


def account(**overrides):
    values = dict(
        bank_name="Test Bank",
        account_type="Savings",
        account_number="123",
        routing_number="011000015",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestAchExport:
    def test_only_banked_rows_are_totalled(self):
        items = [
            item("E1", "Bailey", "1000.00"),
            item("E2", "Alex", "500.00"),
            item("E3", "Casey", "0.00"),
        ]
        employees = {
            "E1": employee(account()),
            "E2": employee(None),
            "E3": employee(account()),
        }

        export = build_ach_export(items, employees)

        assert [r.employee_name for r in export.rows] == ["Alex", "Bailey"]
        assert export.total_amount == Decimal("1000.00")
        assert export.total_transactions == 1
        assert export.missing_banking_info == ["E2"]

    def test_account_type_and_institute(self):
        export = build_ach_export([item("E1", "Bailey", "10.00")], {"E1": employee(account())})

        row = export.rows[0]
        assert row.account_type == "Sv"
        assert row.institute == "St. John's, Antigua"
        assert row.has_banking_info is True

    def test_incomplete_account_is_missing_info(self):
        export = build_ach_export(
            [item("E1", "Bailey", "10.00")], {"E1": employee(account(routing_number=None))}
        )

        assert export.rows[0].has_banking_info is False
        assert export.total_amount == Decimal("0")

    def test_institute_fallbacks(self):
        assert format_institute(None, "Antigua", "Bank") == "Antigua"
        assert format_institute(None, None, "Bank") == "Bank"


class TestDeductionsReport:
    def test_sums_per_employee(self):
        def row(employee_id, gross):
            return item(
                employee_id,
                employee_id,
                "0",
                gross_pay=Decimal(gross),
                ss_employee=Decimal("7.00"),
                ss_employer=Decimal("9.00"),
                mb_employee=Decimal("3.50"),
                mb_employer=Decimal("3.50"),
                education_levy=Decimal("1.00"),
            )

        report = build_deductions_report([row("E1", "100"), row("E1", "100"), row("E2", "100")])

        assert [r.employee_id for r in report.rows] == ["E1", "E2"]
        assert report.rows[0].totals["gross_pay"] == Decimal("200")
        assert report.rows[0].totals["ss_employee"] == Decimal("14.00")
        assert report.totals["ss_employer"] == Decimal("27.00")


class TestThirdPartyPayouts:
    def test_grouped_by_payee(self):
        def loan(name, loan_type="third_party", reference=None):
            return SimpleNamespace(
                loan_type=loan_type,
                third_party_name=name,
                third_party_account="ACC",
                third_party_routing="RT",
                third_party_reference=reference,
            )

        pairs = [
            (loan("Credit Union", reference="CU-1"), SimpleNamespace(amount=Decimal("50.00"))),
            (loan("Credit Union", reference="CU-2"), SimpleNamespace(amount=Decimal("25.00"))),
            (loan("Furniture Store"), SimpleNamespace(amount=Decimal("40.00"))),
            (loan(None, loan_type="internal"), SimpleNamespace(amount=Decimal("99.00"))),
        ]

        payouts = group_third_party_payouts(pairs)

        assert [p.payee_name for p in payouts] == ["Credit Union", "Furniture Store"]
        assert payouts[0].amount == Decimal("75.00")
        assert payouts[0].references == ["CU-1", "CU-2"]


class TestReportService:
    async def test_reports_from_persisted_run(self, session, app_settings, payroll_settings):
        await add_employee(session, "E1")
        await add_employee(session, "E2", bank_accounts=[])
        for employee_id in ("E1", "E2"):
            await add_hours(session, employee_id, PERIOD[0], 10, Decimal("8"))
        await add_loan(
            session,
            "E1",
            loan_type="third_party",
            third_party_name="Credit Union",
            installment_amount=Decimal("50.00"),
        )
        result = await PayrollRunService(session, app_settings).run_payroll(*PERIOD)
        run_id = result.run.payroll_run_id
        reports = ReportService(session)

        export = await reports.ach_export(run_id)
        e1 = next(i for i in result.items if i.employee_id == "E1")
        assert export.total_amount == e1.net_pay
        assert export.missing_banking_info == ["E2"]

        deductions = await reports.deductions_report(date(2024, 1, 1), date(2024, 1, 31))
        assert deductions.totals["gross_pay"] == Decimal("3200.00")

        payouts = await reports.third_party_payouts(run_id)
        assert len(payouts) == 1
        assert payouts[0].amount == Decimal("50.00")

    async def test_unknown_run(self, session):
        with pytest.raises(RunNotFoundError):
            await ReportService(session).ach_export(uuid4())
