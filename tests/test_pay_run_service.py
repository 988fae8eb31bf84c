"""Integration tests for the payroll run lifecycle on SQLite."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from antigua_payroll.calculators.loans import LoanLedgerUpdate
from antigua_payroll.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateRunError,
    LoanLedgerConflictError,
    RatesChangedError,
    RunFinalizedError,
    RunNotFoundError,
)
from antigua_payroll.models import EmployeeLoan, LoanPayment, PayrollRun, PayrollSettings, YTDSummary
from antigua_payroll.schemas import OverrideRequest
from antigua_payroll.services import InvalidTransitionError, LoanLedgerService, PayrollRunService

from conftest import add_employee, add_hours, add_loan

FIRST = (date(2024, 1, 1), date(2024, 1, 14), date(2024, 1, 19))
SECOND = (date(2024, 1, 15), date(2024, 1, 28), date(2024, 2, 2))


async def get_summary(session, employee_id: str, year: int = 2024) -> YTDSummary:
    result = await session.execute(
        select(YTDSummary).where(YTDSummary.employee_id == employee_id, YTDSummary.year == year)
    )
    return result.scalar_one()


@pytest.fixture
async def service(session, app_settings, payroll_settings) -> PayrollRunService:
    return PayrollRunService(session, app_settings)


@pytest.fixture
async def hourly_employee(session):
    employee = await add_employee(session, "E1")
    await add_hours(session, "E1", FIRST[0], 10, Decimal("8"))
    await add_hours(session, "E1", SECOND[0], 10, Decimal("8"))
    return employee


class TestRunPayroll:
    async def test_completed_run(self, service, hourly_employee):
        result = await service.run_payroll(*FIRST)

        assert result.status == "completed"
        assert result.has_errors is False
        assert result.run.total_employees == 1
        assert result.run.total_gross == Decimal("1600.00")
        assert result.run.created_by == "tester"
        assert result.run.engine_version == "test"
        assert result.run.rates_fingerprint

        item = result.items[0]
        assert item.employee_id == "E1"
        assert item.regular_hours == Decimal("80")
        assert item.gross_pay == Decimal("1600.00")
        assert item.net_pay == item.gross_pay - item.ss_employee - item.mb_employee - item.education_levy
        assert item.ytd_gross_pay == Decimal("1600.00")

    async def test_duplicate_period_rejected(self, service, hourly_employee):
        first = await service.run_payroll(*FIRST)

        with pytest.raises(DuplicateRunError) as exc_info:
            await service.run_payroll(*FIRST)

        assert exc_info.value.existing_run_id == first.run.payroll_run_id
        assert exc_info.value.existing_status == "completed"

    async def test_duplicate_rejected_by_database_when_check_misses_it(
        self, service, hourly_employee, monkeypatch
    ):
        await service.run_payroll(*FIRST)

        async def no_blocking_run(period):
            return None

        # A concurrent submission that has not seen the first run yet
        monkeypatch.setattr(service.repository, "find_blocking_run", no_blocking_run)

        with pytest.raises(DuplicateRunError) as exc_info:
            await service.run_payroll(*FIRST)

        assert isinstance(exc_info.value.__cause__, IntegrityError)

    async def test_one_blocking_run_per_period(self, session):
        def make_run(status: str) -> PayrollRun:
            return PayrollRun(
                items=[],
                period_start=FIRST[0],
                period_end=FIRST[1],
                pay_date=FIRST[2],
                status=status,
                created_by="tester",
            )

        session.add_all([make_run("completed_with_errors"), make_run("completed_with_errors")])
        await session.flush()

        session.add_all([make_run("completed"), make_run("finalized")])
        with pytest.raises(IntegrityError):
            await session.flush()

    async def test_failed_employee_completes_with_errors(self, session, service, hourly_employee):
        await add_employee(session, "E2", classification="contractor")

        result = await service.run_payroll(*FIRST)

        assert result.status == "completed_with_errors"
        assert [i.employee_id for i in result.items] == ["E1"]
        assert result.run.error_count == 1
        assert result.run.errors[0]["employee_id"] == "E2"
        assert result.run.errors[0]["error_type"] == "UnknownClassificationError"

    async def test_completed_with_errors_allows_resubmission(self, session, service, hourly_employee):
        await add_employee(session, "E2", classification="contractor")
        first = await service.run_payroll(*FIRST)

        second = await service.run_payroll(*FIRST)

        assert second.run.payroll_run_id != first.run.payroll_run_id

    async def test_missing_rate_settings_persists_nothing(self, session, app_settings, hourly_employee):
        service = PayrollRunService(session, app_settings)

        with pytest.raises(ConfigurationError):
            await service.run_payroll(*FIRST)

        count = await session.scalar(select(func.count()).select_from(PayrollRun))
        assert count == 0

    async def test_thread_pool_run(self, session, service, hourly_employee):
        for n in range(2, 6):
            await add_employee(session, f"E{n}")
            await add_hours(session, f"E{n}", FIRST[0], 10, Decimal("8"))

        result = await service.run_payroll(*FIRST, max_workers=3)

        assert [i.employee_id for i in result.items] == ["E1", "E2", "E3", "E4", "E5"]
        assert result.run.total_gross == Decimal("8000.00")


class TestYearToDate:
    async def test_ytd_is_sum_of_runs(self, session, service, hourly_employee):
        first = await service.run_payroll(*FIRST)
        second = await service.run_payroll(*SECOND)

        item1, item2 = first.items[0], second.items[0]
        summary = await get_summary(session, "E1")

        assert item2.ytd_gross_pay == item1.gross_pay + item2.gross_pay
        assert item2.ytd_net_pay == item1.net_pay + item2.net_pay
        assert summary.gross_pay == item1.gross_pay + item2.gross_pay
        assert summary.worked_hours == Decimal("160")
        assert summary.last_payroll_run_id == second.run.payroll_run_id

    async def test_delete_retracts_contribution(self, session, service, hourly_employee):
        first = await service.run_payroll(*FIRST)
        second = await service.run_payroll(*SECOND)

        await service.delete_run(second.run.payroll_run_id)

        summary = await get_summary(session, "E1")
        assert summary.gross_pay == first.items[0].gross_pay
        assert summary.net_pay == first.items[0].net_pay
        with pytest.raises(RunNotFoundError):
            await service.get_run(second.run.payroll_run_id)

        # The period can be run again
        rerun = await service.run_payroll(*SECOND)
        assert rerun.status == "completed"


class TestLoans:
    async def test_balance_never_overdrawn(self, session, service, hourly_employee):
        loan = await add_loan(session, "E1")

        first = await service.run_payroll(*FIRST)
        assert first.items[0].loan_deduction == Decimal("200.00")
        assert loan.remaining_balance == Decimal("100.00")

        second = await service.run_payroll(*SECOND)
        assert second.items[0].loan_deduction == Decimal("100.00")

        await session.refresh(loan)
        assert loan.remaining_balance == Decimal("0.00")
        assert loan.status == "completed"

        payments = (
            await session.execute(select(LoanPayment).where(LoanPayment.loan_id == loan.loan_id))
        ).scalars().all()
        assert sorted(p.amount for p in payments) == [Decimal("100.00"), Decimal("200.00")]
        summary = await get_summary(session, "E1")
        assert summary.loan_deduction == Decimal("300.00")

    async def test_cancelled_loan_not_deducted(self, session, service, hourly_employee):
        await add_loan(session, "E1", status="cancelled")

        result = await service.run_payroll(*FIRST)

        assert result.items[0].loan_deduction == Decimal("0")
        assert any("cancelled" in w for w in result.warnings["E1"])

    async def test_ledger_rejects_stale_balance(self, session, hourly_employee):
        loan = await add_loan(session, "E1")
        stale = LoanLedgerUpdate(
            loan_id=loan.loan_id,
            employee_id="E1",
            loan_type="internal",
            payment_date=FIRST[2],
            amount=Decimal("200.00"),
            principal_amount=Decimal("200.00"),
            interest_amount=Decimal("0"),
            previous_balance=Decimal("500.00"),
            new_balance=Decimal("300.00"),
            new_status="active",
        )

        with pytest.raises(LoanLedgerConflictError) as exc_info:
            await LoanLedgerService(session).apply(stale, None)

        assert exc_info.value.expected_balance == Decimal("500.00")
        await session.refresh(loan)
        assert loan.remaining_balance == Decimal("300.00")
        assert await session.scalar(select(func.count()).select_from(LoanPayment)) == 0

    async def test_balance_moved_during_run_aborts_run(
        self, session, service, hourly_employee, monkeypatch
    ):
        loan = await add_loan(session, "E1")
        load_inputs = service.repository.load_employee_inputs

        async def load_then_pay_elsewhere(period):
            inputs = await load_inputs(period)
            await session.execute(
                update(EmployeeLoan)
                .where(EmployeeLoan.loan_id == loan.loan_id)
                .values(remaining_balance=Decimal("250.00"))
            )
            return inputs

        monkeypatch.setattr(service.repository, "load_employee_inputs", load_then_pay_elsewhere)

        with pytest.raises(LoanLedgerConflictError) as exc_info:
            await service.run_payroll(*FIRST)

        assert exc_info.value.loan_id == loan.loan_id
        assert exc_info.value.expected_balance == Decimal("300.00")
        await session.refresh(loan)
        assert loan.remaining_balance == Decimal("250.00")
        assert await session.scalar(select(func.count()).select_from(LoanPayment)) == 0

        # The caller's session scope discards the partial run
        await session.rollback()
        assert await session.scalar(select(func.count()).select_from(PayrollRun)) == 0


class TestFinalize:
    async def test_finalized_run_is_immutable(self, service, hourly_employee):
        result = await service.run_payroll(*FIRST)
        run_id = result.run.payroll_run_id

        run = await service.finalize_run(run_id, "payroll-admin")

        assert run.status == "finalized"
        assert run.finalized_by == "payroll-admin"
        with pytest.raises(RunFinalizedError):
            await service.delete_run(run_id)
        with pytest.raises(RunFinalizedError):
            await service.apply_override(
                run_id,
                OverrideRequest(employee_id="E1", net_pay=Decimal("1"), reason="x", actor="admin"),
            )
        with pytest.raises(InvalidTransitionError):
            await service.finalize_run(run_id)

    async def test_finalized_blocks_duplicate(self, service, hourly_employee):
        result = await service.run_payroll(*FIRST)
        await service.finalize_run(result.run.payroll_run_id)

        with pytest.raises(DuplicateRunError):
            await service.run_payroll(*FIRST)

    async def test_processing_run_cannot_be_changed(self, session, service):
        run = PayrollRun(
            items=[],
            period_start=FIRST[0],
            period_end=FIRST[1],
            pay_date=FIRST[2],
            status="processing",
            created_by="tester",
        )
        session.add(run)
        await session.flush()

        with pytest.raises(ConflictError) as exc_info:
            await service.delete_run(run.payroll_run_id)
        assert not isinstance(exc_info.value, RunFinalizedError)
        with pytest.raises(ConflictError):
            await service.apply_override(
                run.payroll_run_id,
                OverrideRequest(employee_id="E1", net_pay=Decimal("1"), reason="x", actor="admin"),
            )

    async def test_unknown_run(self, service):
        with pytest.raises(RunNotFoundError):
            await service.finalize_run(uuid4())


class TestOverrides:
    async def test_override_during_run(self, session, service, hourly_employee):
        request = OverrideRequest(
            employee_id="E1", net_pay=Decimal("500.00"), reason="garnishment", actor="admin"
        )

        result = await service.run_payroll(*FIRST, overrides=[request])

        item = result.items[0]
        assert item.is_override is True
        assert item.net_pay == Decimal("500.00")
        assert item.original_net is not None
        assert item.ytd_net_pay == Decimal("500.00")
        assert result.run.total_net == Decimal("500.00")
        summary = await get_summary(session, "E1")
        assert summary.net_pay == Decimal("500.00")

    async def test_override_for_absent_employee_is_reported(self, service, hourly_employee):
        request = OverrideRequest(
            employee_id="NOBODY", net_pay=Decimal("500.00"), reason="x", actor="admin"
        )

        result = await service.run_payroll(*FIRST, overrides=[request])

        assert "NOBODY" in result.warnings

    async def test_override_after_run_moves_ytd(self, session, service, hourly_employee):
        result = await service.run_payroll(*FIRST)
        computed_net = result.items[0].net_pay

        item = await service.apply_override(
            result.run.payroll_run_id,
            OverrideRequest(employee_id="E1", net_pay=Decimal("1000.00"), reason="fix", actor="admin"),
        )

        assert item.net_pay == Decimal("1000.00")
        assert item.original_net == computed_net
        assert item.ytd_net_pay == Decimal("1000.00")
        assert result.run.total_net == Decimal("1000.00")
        summary = await get_summary(session, "E1")
        assert summary.net_pay == Decimal("1000.00")

    async def test_override_refused_after_rates_change(
        self, session, service, payroll_settings, hourly_employee
    ):
        result = await service.run_payroll(*FIRST)
        item = result.items[0]
        computed_ss = item.ss_employee
        computed_net = item.net_pay

        payroll_settings.is_active = False
        session.add(
            PayrollSettings(
                effective_date=date(2024, 1, 10),
                is_active=True,
                ss_employee_rate=Decimal("10.00"),
            )
        )
        await session.flush()

        with pytest.raises(RatesChangedError) as exc_info:
            await service.apply_override(
                result.run.payroll_run_id,
                OverrideRequest(
                    employee_id="E1", gross_pay=item.gross_pay, reason="fix", actor="admin"
                ),
            )

        assert exc_info.value.run_fingerprint == result.run.rates_fingerprint
        assert item.ss_employee == computed_ss
        assert item.net_pay == computed_net
        assert item.is_override is False
        summary = await get_summary(session, "E1")
        assert summary.ss_employee == computed_ss
