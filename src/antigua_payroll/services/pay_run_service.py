"""Payroll run service - orchestrates a run from inputs to persisted items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from antigua_payroll.calculators.engine import EmployeeFailure, EmployeePayResult, PayrollEngine
from antigua_payroll.calculators.loans import LoanLedgerUpdate
from antigua_payroll.calculators.overrides import OverrideApplier
from antigua_payroll.calculators.types import ZERO, PayPeriod
from antigua_payroll.calculators.ytd import SNAPSHOT_PREFIX, YTDAggregator, YTDTotals
from antigua_payroll.config import Settings, get_settings
from antigua_payroll.database import acquire_advisory_lock, wait_for_advisory_lock
from antigua_payroll.exceptions import (
    ConflictError,
    DuplicateRunError,
    OverrideError,
    RatesChangedError,
    RunFinalizedError,
    RunNotFoundError,
)
from antigua_payroll.models import LoanPayment, PayrollItem, PayrollRun, YTDSummary
from antigua_payroll.schemas import OverrideRequest
from antigua_payroll.services.loan_ledger import LoanLedgerService
from antigua_payroll.services.repository import PayrollRepository
from antigua_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class PayrollRunResult:
    """Outcome of a run: persisted items plus the failure manifest."""

    run: PayrollRun
    items: list[PayrollItem]
    failures: list[EmployeeFailure] = field(default_factory=list)
    loan_updates: list[LoanLedgerUpdate] = field(default_factory=list)
    warnings: dict[str, list[str]] = field(default_factory=dict)

    @property
    def status(self) -> str:
        return self.run.status

    @property
    def has_errors(self) -> bool:
        return len(self.failures) > 0


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - run_payroll: compute every active employee and persist the run
    - finalize_run: lock a completed run against further change
    - apply_override: replace an item's pay after the run, adjusting YTD
    - delete_run: remove a non-finalized run and retract its YTD contribution

    The service flushes but never commits; the caller's session scope makes
    the whole run atomic.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repository = PayrollRepository(session)
        self.loan_ledger = LoanLedgerService(session)
        self.ytd = YTDAggregator()

    async def get_run(self, run_id: UUID) -> PayrollRun:
        run = await self.repository.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def list_runs(self, limit: int = 20) -> list[PayrollRun]:
        return await self.repository.list_runs(limit)

    async def run_payroll(
        self,
        period_start: date,
        period_end: date,
        pay_date: date,
        created_by: str | None = None,
        overrides: Iterable[OverrideRequest] | None = None,
        max_workers: int | None = None,
    ) -> PayrollRunResult:
        """Compute and persist a payroll run for one period.

        This method:
        1. Serializes submissions for the period and rejects duplicates
        2. Snapshots the active rates and loads all inputs once
        3. Computes every employee, collecting per-employee failures
        4. Applies overrides, then loan ledger updates and YTD per employee
        5. Completes the run as completed or completed_with_errors
        """
        period = PayPeriod(period_start, period_end)
        created_by = created_by or self.settings.default_actor
        override_map = self._index_overrides(overrides or [])

        # Held until the caller's transaction ends
        if not await acquire_advisory_lock(self.session, f"payroll_run:{period.fingerprint()}"):
            raise DuplicateRunError(period.start, period.end)

        existing = await self.repository.find_blocking_run(period)
        if existing is not None:
            raise DuplicateRunError(
                period.start, period.end, existing.payroll_run_id, existing.status
            )

        rates = await self.repository.load_rate_table()
        inputs = await self.repository.load_employee_inputs(period)
        holidays = await self.repository.load_holidays(period)

        engine = PayrollEngine(rates, self.settings.engine_version)
        calculation = engine.calculate_all(
            inputs,
            period,
            pay_date,
            holidays,
            max_workers=max_workers or self.settings.max_workers,
        )

        warnings: dict[str, list[str]] = {}
        profiles = {i.profile.employee_id: i.profile for i in inputs}
        applier = OverrideApplier(rates)
        for result in calculation.results:
            request = override_map.pop(result.employee_id, None)
            if request is not None:
                applier.apply(result, request, profiles[result.employee_id], pay_date)
            if result.warnings:
                warnings[result.employee_id] = list(result.warnings)
        for employee_id in override_map:
            logger.warning("Override for %s not applied: no computed item", employee_id)
            warnings.setdefault(employee_id, []).append("override not applied: no computed item")

        run = PayrollRun(
            items=[],
            period_start=period.start,
            period_end=period.end,
            pay_date=pay_date,
            status=PayrollRunStatus.PROCESSING.value,
            created_by=created_by,
            rates_fingerprint=rates.fingerprint(),
            engine_version=self.settings.engine_version,
        )
        self.session.add(run)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateRunError(period.start, period.end) from exc

        await self._lock_ytd_year(pay_date.year)
        items = await self._persist_items(run, calculation.results, pay_date)

        status = PayrollRunStateMachine.completion_status(len(calculation.failures))
        PayrollRunStateMachine.validate_transition(run.status, status)
        run.status = status.value
        run.total_employees = len(items)
        run.total_gross = sum((i.gross_pay for i in items), ZERO)
        run.total_net = sum((i.net_pay for i in items), ZERO)
        run.error_count = len(calculation.failures)
        run.errors = [f.to_dict() for f in calculation.failures]
        await self.session.flush()

        logger.info(
            "Payroll run %s for %s: %d items, %d failures, status %s",
            run.payroll_run_id,
            period.fingerprint(),
            len(items),
            len(calculation.failures),
            run.status,
        )
        return PayrollRunResult(
            run=run,
            items=items,
            failures=calculation.failures,
            loan_updates=[u for r in calculation.results for u in r.loan_updates],
            warnings=warnings,
        )

    async def finalize_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Transition a completed run to finalized with a conditional update."""
        run = await self.get_run(run_id)
        from_status = run.status
        PayrollRunStateMachine.validate_transition(from_status, PayrollRunStatus.FINALIZED)

        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run_id,
                PayrollRun.status == from_status,
            )
            .values(
                status=PayrollRunStatus.FINALIZED.value,
                finalized_by=actor or self.settings.default_actor,
                finalized_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                from_status, PayrollRunStatus.FINALIZED, "run status changed concurrently"
            )

        await self.session.refresh(run, ["status", "finalized_by", "finalized_at"])
        logger.info("Payroll run %s finalized by %s", run_id, run.finalized_by)
        return run

    async def apply_override(self, run_id: UUID, request: OverrideRequest) -> PayrollItem:
        """Override a persisted item and move its YTD contribution accordingly.

        Statutory amounts are recomputed with the run's own rates, so the
        override is refused once the active settings no longer match them.
        """
        run = await self._get_mutable_run(run_id, "override")

        item = next((i for i in run.items if i.employee_id == request.employee_id), None)
        if item is None:
            raise OverrideError(f"Run {run_id} has no item for employee {request.employee_id}")
        employee = await self.repository.get_employee(request.employee_id)
        if employee is None:
            raise OverrideError(f"Employee {request.employee_id} not found")

        rates = await self.repository.load_rate_table()
        if rates.fingerprint() != run.rates_fingerprint:
            raise RatesChangedError(run_id, run.rates_fingerprint, rates.fingerprint())

        await self._lock_ytd_year(run.pay_date.year)
        before = self.ytd.contribution(item)
        OverrideApplier(rates).apply(
            item, request, self.repository.to_profile(employee), run.pay_date
        )
        after = self.ytd.contribution(item)
        delta = after - before

        summaries = await self.repository.get_ytd_summaries([item.employee_id], run.pay_date.year)
        summary = summaries.get(item.employee_id)
        if summary is not None:
            (YTDTotals.from_source(summary) + delta).write_to(summary)
        (YTDTotals.from_source(item, SNAPSHOT_PREFIX) + delta).write_to(item, SNAPSHOT_PREFIX)

        run.total_gross = run.total_gross + delta.gross_pay
        run.total_net = run.total_net + delta.net_pay
        await self.session.flush()
        return item

    async def delete_run(self, run_id: UUID, actor: str | None = None) -> None:
        """Delete a non-finalized run, retracting its YTD contribution.

        Loan payments taken by the run stay on the ledger, detached from
        the deleted items.
        """
        run = await self._get_mutable_run(run_id, "delete")

        await self._lock_ytd_year(run.pay_date.year)
        summaries = await self.repository.get_ytd_summaries(
            [i.employee_id for i in run.items], run.pay_date.year
        )
        for item in run.items:
            summary = summaries.get(item.employee_id)
            if summary is None:
                logger.warning("No YTD summary to retract for employee %s", item.employee_id)
                continue
            retracted = self.ytd.retract(YTDTotals.from_source(summary), self.ytd.contribution(item))
            retracted.write_to(summary)

        item_ids = [i.payroll_item_id for i in run.items]
        if item_ids:
            detached = await self.session.execute(
                update(LoanPayment)
                .where(LoanPayment.payroll_item_id.in_(item_ids))
                .values(payroll_item_id=None)
                .execution_options(synchronize_session=False)
            )
            if detached.rowcount:
                logger.warning(
                    "Run %s deleted with %d loan payments left on the ledger",
                    run_id,
                    detached.rowcount,
                )

        await self.session.delete(run)
        await self.session.flush()
        logger.info("Payroll run %s deleted by %s", run_id, actor or self.settings.default_actor)

    async def _persist_items(
        self,
        run: PayrollRun,
        results: list[EmployeePayResult],
        pay_date: date,
    ) -> list[PayrollItem]:
        """Insert items, then per employee: loan ledger updates, then YTD."""
        items = [PayrollItem(**result.item_values()) for result in results]
        run.items.extend(items)
        await self.session.flush()

        summaries = await self.repository.get_ytd_summaries(
            [r.employee_id for r in results], pay_date.year
        )
        for result, item in zip(results, items):
            for ledger_update in result.loan_updates:
                await self.loan_ledger.apply(ledger_update, item.payroll_item_id)

            summary = summaries.get(result.employee_id)
            totals = self.ytd.accumulate(
                YTDTotals.from_source(summary), self.ytd.contribution(result)
            )
            self.ytd.write_snapshot(item, totals)
            if summary is None:
                summary = YTDSummary(employee_id=result.employee_id, year=pay_date.year)
                self.session.add(summary)
            totals.write_to(summary)
            summary.last_payroll_run_id = run.payroll_run_id

        await self.session.flush()
        return items

    @staticmethod
    def _index_overrides(overrides: Iterable[OverrideRequest]) -> dict[str, OverrideRequest]:
        indexed: dict[str, OverrideRequest] = {}
        for request in overrides:
            if request.employee_id in indexed:
                raise OverrideError(f"More than one override for employee {request.employee_id}")
            indexed[request.employee_id] = request
        return indexed

    async def _get_mutable_run(self, run_id: UUID, action: str) -> PayrollRun:
        """Load and row-lock a run whose items may still change."""
        run = await self.repository.get_run(run_id, for_update=True)
        if run is None:
            raise RunNotFoundError(run_id)
        if not PayrollRunStateMachine.are_results_mutable(run.status):
            if run.is_finalized:
                raise RunFinalizedError(run_id, action)
            raise ConflictError(f"Cannot {action} payroll run {run_id} while it is {run.status}")
        return run

    async def _lock_ytd_year(self, year: int) -> None:
        """Serialize YTD writers for one year, including first-time inserts."""
        await wait_for_advisory_lock(self.session, f"payroll_ytd:{year}")
